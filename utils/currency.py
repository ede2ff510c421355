def round_money(amount: float) -> float:
    """Round to cents. Every stored balance or total passes through here."""
    # "+ 0.0" folds -0.0 into 0.0
    return round(float(amount), 2) + 0.0


def format_currency(amount: float, currency: str = "USD") -> str:
    """Format a float as currency string, e.g. 'USD 1,234.56'."""
    return f"{currency} {amount:,.2f}"
