"""Built-in catalogue of published deprivation datasets.

Each entry declares the exact header row of the published file, the column
holding the LSOA code and the typed fields kept from each row. Adding a dataset
means adding one descriptor here.
"""

from __future__ import annotations

from deprivare.datasets.registry import DatasetDescriptor, DatasetRegistry, FieldSpec

UK_COMPOSITE_IMD_2020_MYSOC = DatasetDescriptor(
    id="uk-composite-imd-2020-mysoc",
    title="UK composite index of multiple deprivation, 2020 (MySociety)",
    year=2020,
    description=(
        "A composite UK score for deprivation indices for 2020 - based on England\n"
        "with adjusted scores for the other nations as per Abel, Payne and Barclay but\n"
        "calculated by Alex Parsons on behalf of MySociety."
    ),
    headers=(
        "nation",
        "lsoa",
        "overall_local_score",
        "income_score",
        "employment_score",
        "UK_IMD_E_score",
        "original_decile",
        "E_expanded_decile",
        "UK_IMD_E_rank",
        "UK_IMD_E_pop_decile",
        "UK_IMD_E_pop_quintile",
    ),
    key_column="lsoa",
    fields=(
        FieldSpec("nation", "nation", "string"),
        FieldSpec("UK_IMD_E_score", "UK_IMD_E_score", "float"),
        FieldSpec("UK_IMD_E_rank", "UK_IMD_E_rank", "float"),
        FieldSpec("UK_IMD_E_pop_decile", "UK_IMD_E_pop_decile", "integer"),
        FieldSpec("UK_IMD_E_pop_quintile", "UK_IMD_E_pop_quintile", "integer"),
    ),
    url=(
        "https://github.com/mysociety/composite_uk_imd/blob/"
        "e7a14d3317d9462890c28513866687a3a35adc8d/uk_index/UK_IMD_E.csv?raw=true"
    ),
)

WALES_IMD_2019_RANKS = DatasetDescriptor(
    id="wales-imd-2019-ranks",
    title="Welsh index of multiple deprivation, 2019 (ranks)",
    year=2019,
    description=(
        "Welsh Index of Multiple Deprivation 2019 overall and domain ranks for each\n"
        "LSOA in Wales, where 1 is the most deprived. Install from a CSV export of the\n"
        "published ranks table."
    ),
    headers=(
        "LSOA code",
        "LSOA name (Eng)",
        "Local Authority name (Eng)",
        "WIMD 2019",
        "Income",
        "Employment",
        "Health",
        "Education",
        "Access to Services",
        "Housing",
        "Community Safety",
        "Physical Environment",
    ),
    key_column="LSOA code",
    fields=(
        FieldSpec("wimd_2019", "WIMD 2019", "integer"),
        FieldSpec("income", "Income", "integer"),
        FieldSpec("employment", "Employment", "integer"),
        FieldSpec("health", "Health", "integer"),
        FieldSpec("education", "Education", "integer"),
        FieldSpec("access_to_services", "Access to Services", "integer"),
        FieldSpec("housing", "Housing", "integer"),
        FieldSpec("community_safety", "Community Safety", "integer"),
        FieldSpec("physical_environment", "Physical Environment", "integer"),
    ),
)

ENGLAND_IMD_2019 = DatasetDescriptor(
    id="england-imd-2019",
    title="English index of multiple deprivation, 2019",
    year=2019,
    description=(
        "English Indices of Deprivation 2019: overall IMD rank and decile for each\n"
        "LSOA in England, where rank 1 is the most deprived. Install from a CSV export\n"
        "of the published IMD table."
    ),
    headers=(
        "LSOA code (2011)",
        "LSOA name (2011)",
        "Local Authority District code (2019)",
        "Local Authority District name (2019)",
        "Index of Multiple Deprivation (IMD) Rank",
        "Index of Multiple Deprivation (IMD) Decile",
    ),
    key_column="LSOA code (2011)",
    fields=(
        FieldSpec("lad19cd", "Local Authority District code (2019)", "string"),
        FieldSpec("imd_rank", "Index of Multiple Deprivation (IMD) Rank", "integer"),
        FieldSpec("imd_decile", "Index of Multiple Deprivation (IMD) Decile", "integer"),
    ),
)

BUILTIN_DATASETS = (
    UK_COMPOSITE_IMD_2020_MYSOC,
    WALES_IMD_2019_RANKS,
    ENGLAND_IMD_2019,
)


def default_registry() -> DatasetRegistry:
    return DatasetRegistry(BUILTIN_DATASETS)
