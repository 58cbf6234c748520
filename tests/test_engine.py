import threading

import pytest

from repair_pricing.engine import IndexState, PricingEngine
from repair_pricing.errors import CatalogParseError, IndexNotReadyError

QUERIES = [
    "iPhone 14 pantalla",
    "pantalla iphone 14 pro",
    "bateria iphone 13",
    "iPhone 99 pantalla",
    "samsung s23",
    "xyzzy",
    "",
]


def test_loaded_engine_is_ready(engine):
    assert engine.state == IndexState.READY
    assert engine.get_index_info() == {"state": "ready", "items": 13, "priced_items": 9, "vectors": 13}


@pytest.mark.parametrize("query", QUERIES)
@pytest.mark.parametrize("limit", [1, 3, 20])
def test_results_are_bounded_ordered_and_unique(engine, query, limit):
    results = engine.search_products(query, limit)

    assert len(results) <= limit
    scores = [r.score for r in results]
    assert scores == sorted(scores, reverse=True)
    ids = [r.item.id for r in results]
    assert len(ids) == len(set(ids))


def test_zero_limit(engine):
    assert engine.search_products("pantalla iphone 14", 0) == []


def test_base_model_query_excludes_variants(engine):
    results = engine.search_products("iPhone 14 pantalla", 20)

    assert results
    assert {r.item.device_model for r in results} == {"iphone 14"}
    assert not any(r.is_approximate for r in results)


def test_variant_query_returns_only_the_variant(engine):
    results = engine.search_products("iPhone 14 Pro pantalla", 20)

    assert results
    assert {r.item.raw_name for r in results} == {
        "Pantalla iPhone 14 Pro Original", "Pantalla iPhone 14 Pro Compatible"}


def test_unknown_model_is_flagged_approximate(engine):
    results = engine.search_products("iPhone 99 pantalla", 20)

    assert results
    assert all(r.is_approximate for r in results)
    assert all(r.exact_model_requested == "iphone 99" for r in results)


def test_unmatched_query_falls_back_to_priced_items(engine):
    results = engine.search_products("xyzzy", 5)

    assert len(results) == 5
    assert all(r.item.has_valid_price for r in results)


def test_failing_provider_degrades_to_keywords(make_engine, failing_embedder, sample_csv):
    engine = make_engine(failing_embedder)
    engine.load(sample_csv)

    assert engine.state == IndexState.DEGRADED
    results = engine.search_products("iPhone 13 bateria", 20)
    assert {r.item.raw_name for r in results} == {"Bateria iPhone 13", "Battery iPhone 13 Original"}
    assert all(r.strategy == "keyword" for r in results)


def test_degraded_engine_recovers_on_reload(make_engine, failing_embedder, embedder, sample_csv):
    engine = make_engine(failing_embedder)
    engine.load(sample_csv)
    assert engine.state == IndexState.DEGRADED

    engine.provider = embedder
    engine.load(sample_csv)
    assert engine.state == IndexState.READY
    assert engine.get_index_info()["vectors"] == 13


def test_query_failure_is_not_surfaced(engine, embedder):
    embedder.broken = True
    results = engine.search_products("bateria iphone 13", 20)

    assert {r.item.device_model for r in results} == {"iphone 13"}


def test_reload_makes_no_provider_calls(engine, embedder, sample_csv):
    calls = embedder.calls
    engine.load(sample_csv)

    assert engine.state == IndexState.READY
    assert embedder.calls == calls


def test_cache_survives_a_new_engine(engine, make_engine, embedder, sample_csv):
    calls = embedder.calls
    fresh = make_engine(embedder)
    fresh.load(sample_csv)

    assert embedder.calls == calls
    assert fresh.get_index_info()["vectors"] == 13


def test_queries_before_loading_raise(make_engine, embedder):
    engine = make_engine(embedder)
    assert engine.state == IndexState.UNINITIALIZED
    with pytest.raises(IndexNotReadyError):
        engine.search_products("pantalla iphone 14")


def test_failed_first_load(make_engine, embedder):
    engine = make_engine(embedder)
    with pytest.raises(CatalogParseError):
        engine.load("Producto,Precio\n")

    assert engine.state == IndexState.DEGRADED
    with pytest.raises(IndexNotReadyError):
        engine.find_relevant_products("pantalla iphone 14")


def test_failed_reload_keeps_previous_catalog(engine):
    with pytest.raises(CatalogParseError):
        engine.load("Producto,Precio\n")

    assert engine.state == IndexState.READY
    assert engine.search_products("iPhone 14 Pro pantalla", 5)


def test_load_file(make_engine, embedder, sample_csv, tmp_path):
    path = tmp_path / "pricing.csv"
    path.write_text(sample_csv, encoding="utf-8")
    engine = make_engine(embedder)
    engine.load_file(path)

    assert engine.get_index_info()["items"] == 13


def test_background_refresh(make_engine, embedder, sample_csv):
    engine = make_engine(embedder)
    thread = engine.refresh_in_background(source_text=sample_csv)
    assert thread is not None

    # readers wait for the first snapshot instead of failing
    assert engine.search_products("iPhone 14 pantalla", 5)
    thread.join(5)
    assert engine.state == IndexState.READY


def test_refresh_is_skipped_while_loading(engine, sample_csv):
    engine._load_lock.acquire()
    try:
        assert engine.refresh_in_background(source_text=sample_csv) is None
    finally:
        engine._load_lock.release()
    assert engine.state == IndexState.READY


def test_readers_use_previous_snapshot_during_refresh(engine, embedder, sample_csv):
    started = threading.Event()
    release = threading.Event()
    original_embed = embedder.embed

    def slow_embed(text):
        if "iphone 15" in text:
            started.set()
            release.wait(5)
        return original_embed(text)

    embedder.embed = slow_embed
    thread = engine.refresh_in_background(source_text=sample_csv + "Pantalla iPhone 15,20000,1\n")
    assert started.wait(5)

    assert engine.state == IndexState.LOADING
    assert engine.get_index_info()["items"] == 13
    assert engine.search_products("iPhone 14 Pro pantalla", 5)

    release.set()
    thread.join(5)
    assert engine.state == IndexState.READY
    assert engine.get_index_info()["items"] == 14


def test_find_relevant_products_skips_refinement(engine):
    results = engine.find_relevant_products("pantalla iphone 14", 20)

    assert results
    assert len({r.item.device_model for r in results}) > 1
    assert not any(r.is_approximate for r in results)


def test_find_all_quality_options(engine):
    groups = engine.find_all_quality_options("iPhone 14", "pantalla")

    assert len(groups) == 1
    assert [o.quality_tier for o in groups[0].options] == ["compatible", "incell", "original", "oled"]
    assert [o.price for o in groups[0].options] == [6900.0, 8200.0, 12500.0, None]


def test_extract_price(engine, catalog_items):
    assert PricingEngine.extract_price(catalog_items[0]) == 12500.0
    assert engine.extract_price({"Producto": "x", "Precio": "N/A"}) is None


@pytest.fixture
def crowded_csv():
    """More same-scoring rows than any result page, ahead of the rows asked for."""
    rows = ["Producto,PUBLICO TIENDA"]
    rows += [f"Bateria iPhone 11 lote {i},3000" for i in range(120)]
    rows += [f"Pantalla iPhone 12 lote {i},5000" for i in range(120)]
    rows += ["Bateria iPhone 13,3500", "Pantalla iPhone 14 Original,12500", "Pantalla iPhone 14 Compatible,6900"]
    return "\n".join(rows) + "\n"


def test_keyword_path_finds_exact_model_behind_many_ties(make_engine, failing_embedder, crowded_csv):
    engine = make_engine(failing_embedder)
    engine.load(crowded_csv)
    assert engine.state == IndexState.DEGRADED

    results = engine.search_products("iPhone 13 bateria", 20)
    assert [r.item.raw_name for r in results] == ["Bateria iPhone 13"]
    assert not results[0].is_approximate


def test_quality_options_behind_many_ties(make_engine, failing_embedder, crowded_csv):
    engine = make_engine(failing_embedder)
    engine.load(crowded_csv)

    groups = engine.find_all_quality_options("iPhone 14", "pantalla")
    assert len(groups) == 1
    assert [o.price for o in groups[0].options] == [6900.0, 12500.0]


def test_semantic_path_finds_exact_model_behind_many_ties(make_engine, embedder, crowded_csv):
    engine = make_engine(embedder)
    engine.load(crowded_csv)
    assert engine.state == IndexState.READY

    results = engine.search_products("iPhone 14 pantalla", 20)
    assert {r.item.raw_name for r in results} == {"Pantalla iPhone 14 Original", "Pantalla iPhone 14 Compatible"}
    assert len(engine.find_all_quality_options("iPhone 14", "pantalla")[0].options) == 2


def test_unexpected_read_error_settles_first_load(make_engine, embedder, monkeypatch):
    def broken_load(text):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr("repair_pricing.engine.loader.load", broken_load)
    engine = make_engine(embedder)
    with pytest.raises(RuntimeError):
        engine.load("anything")

    assert engine.state == IndexState.DEGRADED
    with pytest.raises(IndexNotReadyError):
        engine.search_products("pantalla iphone 14")


def test_unexpected_read_error_keeps_previous_catalog(engine, monkeypatch):
    def broken_load(text):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr("repair_pricing.engine.loader.load", broken_load)
    with pytest.raises(RuntimeError):
        engine.load("anything")

    assert engine.state == IndexState.READY
    assert engine.search_products("iPhone 14 Pro pantalla", 5)


def test_background_refresh_survives_unexpected_read_error(engine, monkeypatch):
    def broken_load(text):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr("repair_pricing.engine.loader.load", broken_load)
    thread = engine.refresh_in_background(source_text="anything")
    thread.join(5)

    assert engine.state == IndexState.READY
    # the load guard was released
    second = engine.refresh_in_background(source_text="anything")
    assert second is not None
    second.join(5)
