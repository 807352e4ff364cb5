"""
ISO 4217 currency minor units.

Maps each supported currency code to the number of decimal places its
smallest unit carries. An amount may not be more precise than this; 10.001
USD or 5.5 JPY are invalid amounts, not rounding opportunities.
"""

MINOR_UNITS: dict[str, int] = {
    # ─── Two decimals (cents) ──────────────────────────────────────────
    "USD": 2,  # US Dollar
    "EUR": 2,  # Euro
    "GBP": 2,  # Pound Sterling
    "CAD": 2,  # Canadian Dollar
    "AUD": 2,  # Australian Dollar
    "NZD": 2,  # New Zealand Dollar
    "CHF": 2,  # Swiss Franc
    "SEK": 2,  # Swedish Krona
    "NOK": 2,  # Norwegian Krone
    "DKK": 2,  # Danish Krone
    "PLN": 2,  # Zloty
    "HUF": 2,  # Forint
    "RON": 2,  # Romanian Leu
    "SGD": 2,  # Singapore Dollar
    "HKD": 2,  # Hong Kong Dollar
    "INR": 2,  # Indian Rupee
    "MXN": 2,  # Mexican Peso
    "ILS": 2,  # New Israeli Sheqel
    "IDR": 2,  # Rupiah
    "ZAR": 2,  # Rand
    "PKR": 2,  # Pakistan Rupee
    "BRL": 2,  # Brazilian Real
    "CNY": 2,  # Yuan Renminbi
    # ─── Zero decimals ─────────────────────────────────────────────────
    "JPY": 0,  # Yen
    "KRW": 0,  # Won
    "CLP": 0,  # Chilean Peso
    "VND": 0,  # Dong
    "ISK": 0,  # Iceland Krona
    # ─── Three decimals ────────────────────────────────────────────────
    "BHD": 3,  # Bahraini Dinar
    "JOD": 3,  # Jordanian Dinar
    "KWD": 3,  # Kuwaiti Dinar
    "OMR": 3,  # Rial Omani
    "TND": 3,  # Tunisian Dinar
}

SUPPORTED_CURRENCIES = frozenset(MINOR_UNITS)
