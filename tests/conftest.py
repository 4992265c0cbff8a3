import io
from pathlib import Path

import pytest
import requests
from urllib3.response import HTTPResponse

from deprivare.datasets.registry import DatasetDescriptor, DatasetRegistry, FieldSpec
from deprivare.store.sqlite_store import DeprivationStore

SCORES = DatasetDescriptor(
    id="test-scores-2024",
    title="Synthetic scores",
    year=2024,
    description="Synthetic float scores per LSOA.",
    headers=("lsoa", "score"),
    key_column="lsoa",
    fields=(FieldSpec("score", "score", "float"),),
)

RANKS = DatasetDescriptor(
    id="test-ranks-2023",
    title="Synthetic ranks",
    year=2023,
    description="Synthetic integer ranks per LSOA.",
    headers=("LSOA code", "name", "rank"),
    key_column="LSOA code",
    fields=(
        FieldSpec("name", "name", "string"),
        FieldSpec("rank", "rank", "integer"),
    ),
)

SCORE_ROWS = [
    ["lsoa", "score"],
    ["W01000001", "5.2"],
    ["W01000002", "7.9"],
]

RANK_ROWS = [
    ["LSOA code", "name", "rank"],
    ["W01000001", "Abertawe 001A", "12"],
    ["W01000009", "Abertawe 009B", "300"],
]


@pytest.fixture
def registry() -> DatasetRegistry:
    return DatasetRegistry([SCORES, RANKS])


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "depriv.db"


@pytest.fixture
def store(db_path: Path, registry: DatasetRegistry):
    with DeprivationStore.open_or_create(db_path, registry.schema(), read_only=False) as handle:
        yield handle


def make_response(body: bytes, status_code: int = 200) -> requests.Response:
    """A real streamed ``requests.Response`` over an in-memory body."""
    response = requests.Response()
    response.status_code = status_code
    response.url = "https://example.com/data.csv"
    response.raw = HTTPResponse(body=io.BytesIO(body), status=status_code, preload_content=False)
    return response
