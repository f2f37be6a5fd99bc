"""Field patches pushed from a recurrence to its generated transactions"""

from typing import Any, Dict, Mapping

from treasury_gateway.domain.exceptions import NoValidFieldsError

# Settlement details only; identity fields (amount, dates, type) never propagate
PROPAGABLE_FIELDS = (
    "payment_method",
    "charge_account_id",
    "supplier_bank_account",
    "supplier_invoice_number",
)


def filter_patch(field_patch: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Keep only allow-listed fields; other keys are dropped silently.

    Raises:
        NoValidFieldsError: nothing propagable remains
    """
    patch = {name: field_patch[name] for name in PROPAGABLE_FIELDS if name in field_patch}
    if not patch:
        raise NoValidFieldsError(
            f"No propagable fields in patch; allowed: {', '.join(PROPAGABLE_FIELDS)}"
        )
    return patch
