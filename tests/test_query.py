from repair_pricing.rag.query import analyze


def test_analyze_extracts_all_parts():
    analysis = analyze("Cuánto sale la pantalla original del iPhone 14 Pro?")
    assert analysis.exact_device_model == "iphone 14 pro"
    assert analysis.service_type == "pantalla"
    assert analysis.quality_hint == "original"


def test_analyze_base_model():
    assert analyze("pantalla iphone 14").exact_device_model == "iphone 14"


def test_unmatched_parts_are_none():
    analysis = analyze("hola, buen día")
    assert analysis.exact_device_model is None
    assert analysis.service_type is None
    assert analysis.quality_hint is None


def test_empty_query():
    analysis = analyze("")
    assert analysis.raw_query == ""
    assert analysis.exact_device_model is None
