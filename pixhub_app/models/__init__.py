# pixhub_app/models/__init__.py
# -*- coding: utf-8 -*-
from .user import User
from .fee_config import FeeConfig
from .credential import ApiCredential
from .webhook import MerchantWebhook
from .partner import SplitPartner, PartnerProduct
from .transaction import Transaction, PixCharge, PartnerTransaction
from .charge_intent import ChargeIntent
from .withdrawal import Withdrawal


__all__ = [
    "User",
    "FeeConfig",
    "ApiCredential",
    "MerchantWebhook",
    "SplitPartner",
    "PartnerProduct",
    "Transaction",
    "PixCharge",
    "PartnerTransaction",
    "ChargeIntent",
    "Withdrawal",
]
