# app/core/currency.py
"""
Rupee formatting helpers for display strings in API responses.

Indian digit grouping puts the first comma after three digits and every
following comma after two: 12345678 -> 1,23,45,678.
"""

RUPEE_SIGN = "₹"


def format_indian_number(num: float) -> str:
    """
    Group the integer part the Indian way and keep at most 2 decimals
    (trailing zeros dropped).
    """
    negative = num < 0
    text = f"{abs(num):.2f}".rstrip("0").rstrip(".")
    whole, _, fraction = text.partition(".")

    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])

    result = f"{whole}.{fraction}" if fraction else whole
    return f"-{result}" if negative else result


def format_inr(amount: float) -> str:
    """
    Format an amount as Indian Rupees, e.g. 150000 -> "₹1,50,000".
    """
    if amount < 0:
        return f"-{RUPEE_SIGN}{format_indian_number(-amount)}"
    return f"{RUPEE_SIGN}{format_indian_number(amount)}"


def discount_percentage(mrp: float | None, price: float) -> int:
    """
    Rounded discount of `price` against `mrp`; 0 when there is no discount.
    """
    if not mrp or mrp <= price:
        return 0
    return round((mrp - price) / mrp * 100)
