"""
Shared pytest fixtures for PhyloMap tests.

Provides example trees, sample tables and an isolated service/application
for every test that touches settings.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from backend.app.core.config import get_settings
from backend.app.services.newick import Clade, parse
from backend.app.services.sample_store import SampleStore
from backend.app.services.tree_model import PhyloTree
from backend.app.services.tree_service import get_phylomap_service

FIVE_TAXA_NEWICK = "((A:0.9,(B:0.,(C:0.3,D:0.4):0.5):0.1):0.6,E:2.8);"

SAMPLE_TABLE = """taxon,latitude,longitude,date
A,48.2,16.37,2019-03-01
A,47.1,15.4,2019-05-12
B,40.4,-3.7,2018-11-30
C,51.5,-0.12,2020-01-15
E,-33.9,151.2,2017-07-04
E,-37.8,144.9,
"""


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Point settings at a temporary data directory and reset cached singletons."""
    data_dir = tmp_path / "data"
    monkeypatch.setenv("PHYLOMAP_DATA_DIR", str(data_dir))
    monkeypatch.delenv("PHYLOMAP_TREE_PATH", raising=False)
    monkeypatch.delenv("PHYLOMAP_SAMPLES_PATH", raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    get_phylomap_service.cache_clear()
    yield data_dir
    get_settings.cache_clear()
    get_phylomap_service.cache_clear()


@pytest.fixture
def five_taxa_root() -> Clade:
    """Five-tip tree with nested unnamed internal nodes."""
    return parse(FIVE_TAXA_NEWICK)


@pytest.fixture
def five_taxa_tree(five_taxa_root: Clade) -> PhyloTree:
    return PhyloTree(five_taxa_root, name="five")


@pytest.fixture
def sample_store() -> SampleStore:
    """Samples for A, B, C and E; D has none."""
    return SampleStore(
        {
            "A": [(48.2, 16.37), (47.1, 15.4)],
            "B": [(40.4, -3.7)],
            "C": [(51.5, -0.12)],
            "E": [(-33.9, 151.2), (-37.8, 144.9)],
        },
        {
            "A": ["2019-03-01", "2019-05-12"],
            "B": ["2018-11-30"],
            "C": ["2020-01-15"],
            "E": ["2017-07-04", None],
        },
    )


@pytest.fixture
def tree_file(tmp_path: Path) -> Path:
    path = tmp_path / "five.nwk"
    path.write_text(FIVE_TAXA_NEWICK + "\n", encoding="utf-8")
    return path


@pytest.fixture
def samples_file(tmp_path: Path) -> Path:
    path = tmp_path / "samples.csv"
    path.write_text(SAMPLE_TABLE, encoding="utf-8")
    return path
