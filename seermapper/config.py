# Census vintages with boundary datasets
CENSUS_YEARS = (2000, 2010)
DEFAULT_CENSUS_YEAR = 2000

# Identifier widths (digits)
STATE_WIDTH = 2
HSA_WIDTH = 3
COUNTY_WIDTH = 5
TRACT_WIDTH = 11

# NCI Health Service Areas are numbered 001..999
HSA_MIN = 1
HSA_MAX = 999

# All US state FIPS codes for complete national coverage
STATE_FIPS = {
    "01": "AL", "02": "AK", "04": "AZ", "05": "AR", "06": "CA", "08": "CO",
    "09": "CT", "10": "DE", "11": "DC", "12": "FL", "13": "GA", "15": "HI",
    "16": "ID", "17": "IL", "18": "IN", "19": "IA", "20": "KS", "21": "KY",
    "22": "LA", "23": "ME", "24": "MD", "25": "MA", "26": "MI", "27": "MN",
    "28": "MS", "29": "MO", "30": "MT", "31": "NE", "32": "NV", "33": "NH",
    "34": "NJ", "35": "NM", "36": "NY", "37": "NC", "38": "ND", "39": "OH",
    "40": "OK", "41": "OR", "42": "PA", "44": "RI", "45": "SC", "46": "SD",
    "47": "TN", "48": "TX", "49": "UT", "50": "VT", "51": "VA", "53": "WA",
    "54": "WV", "55": "WI", "56": "WY"
}

# States left out of a contiguous-48 map
CONTIGUOUS_EXCLUDED = {"02", "15"}

# SEER cancer registries, each bound to exactly one state
SEER_REGISTRIES = {
    "AK-NAT": {"state": "02", "name": "Alaska Natives"},
    "AZ-NAT": {"state": "04", "name": "Arizona Indians"},
    "CA-LA": {"state": "06", "name": "Los Angeles"},
    "CA-SF": {"state": "06", "name": "San Francisco-Oakland"},
    "CA-SJ": {"state": "06", "name": "San Jose-Monterey"},
    "CA-GC": {"state": "06", "name": "Greater California"},
    "CT": {"state": "09", "name": "Connecticut"},
    "GA-ATL": {"state": "13", "name": "Atlanta"},
    "GA-RUR": {"state": "13", "name": "Rural Georgia"},
    "GA-GG": {"state": "13", "name": "Greater Georgia"},
    "HI": {"state": "15", "name": "Hawaii"},
    "IA": {"state": "19", "name": "Iowa"},
    "ID": {"state": "16", "name": "Idaho"},
    "KY": {"state": "21", "name": "Kentucky"},
    "LA": {"state": "22", "name": "Louisiana"},
    "MI-DET": {"state": "26", "name": "Detroit"},
    "NJ": {"state": "34", "name": "New Jersey"},
    "NM": {"state": "35", "name": "New Mexico"},
    "UT": {"state": "49", "name": "Utah"},
    "WA-SEA": {"state": "53", "name": "Seattle-Puget Sound"},
}

# States whose 2010 boundaries differ from 2000, per boundary type.
# Tracts are re-delineated every census and always follow the requested year.
BOUNDARY_CHANGED_STATES = {
    "county": {"02", "08", "51"},  # AK, CO, VA
    "hsa": {"08", "51"},           # CO, VA
}

# Categories supported by the palettes
MIN_CATEGORIES = 3
MAX_CATEGORIES = 11
DEFAULT_CATEGORIES = 5
MAX_USER_BREAKPOINTS = 5

# Hatching defaults (p-value semantics)
DEFAULT_HATCH_OP = ">"
DEFAULT_HATCH_VALUE = 0.05

DEFAULT_PALETTE = "-RdYlBu"
NO_DATA_COLOR = "#e6e6e6"
CONTEXT_COLOR = "#f7f7f7"

# Conventional input column names, tried in order when not configured
ID_COLUMN_CANDIDATES = ("FIPS", "fips", "GEOID", "geoid", "ID", "id", "HSA", "hsa", "Registry", "registry", "Loc", "loc")
HATCH_COLUMN_CANDIDATES = ("pValue", "pvalue", "p_value", "PValue", "pval")

# Partition holding every state outline
NATION_PARTITION = "US"
