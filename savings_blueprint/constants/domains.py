RETIREMENT = "Retirement"
EDUCATION = "Education"
HEALTH = "Health"

# Weighted domains, in waterfall cascade order (leftover flows left to right).
CASCADE_ORDER = (EDUCATION, HEALTH, RETIREMENT)
WEIGHTED_DOMAINS = (RETIREMENT, EDUCATION, HEALTH)

TAX_PREFERENCES = ("Now", "Later", "Both")

TAX_BUCKETS = {
    "roth": "tax_free",
    "health": "tax_free",
    "traditional": "tax_deferred",
    "match": "tax_deferred",
    "deferred": "tax_deferred",
    "taxable": "taxable",
}
