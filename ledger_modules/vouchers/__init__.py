"""
Vouchers Module (``ledger_modules.vouchers``).

Responsibility
--------------
Discount vouchers: a capped percentage off one product, valid inside a time
window for a limited number of uses.
"""

from ledger_modules.vouchers.models import VoucherInfo, VoucherQuote
from ledger_modules.vouchers.service import VoucherService, normalize_code

__all__ = ["VoucherInfo", "VoucherQuote", "VoucherService", "normalize_code"]
