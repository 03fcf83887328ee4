# tests/test_price_extractor.py

"""Tests for price parsing and the confidence-tiered extractor."""

import json
import unittest

from src.filters.price_extractor import (
    CONFIDENCE_HIGH,
    CONFIDENCE_LOW,
    CONFIDENCE_MEDIUM,
    CONFIDENCE_NONE,
    detect_currency,
    extract_price,
    parse_price,
)


def _json_ld(data: object) -> str:
    return (
        '<script type="application/ld+json">'
        f"{json.dumps(data)}</script>"
    )


class TestParsePrice(unittest.TestCase):
    """String-to-number parsing across locales."""

    def test_canonical_forms_agree(self) -> None:
        """US, EU and plain notations all parse to 1234.56."""
        for raw in ("$1,234.56", "1.234,56 EUR", "1234.56"):
            with self.subTest(raw=raw):
                parsed = parse_price(raw)
                assert parsed is not None
                self.assertAlmostEqual(parsed.value, 1234.56)

    def test_currency_inference(self) -> None:
        """Symbols and ISO codes resolve to currency codes."""
        us = parse_price("$1,234.56")
        eu = parse_price("1.234,56 EUR")
        plain = parse_price("1234.56")
        assert us is not None and eu is not None and plain is not None
        self.assertEqual(us.currency, "USD")
        self.assertEqual(eu.currency, "EUR")
        self.assertIsNone(plain.currency)

    def test_comma_decimal(self) -> None:
        """A comma followed by two digits is a decimal mark."""
        parsed = parse_price("12,99 €")
        assert parsed is not None
        self.assertAlmostEqual(parsed.value, 12.99)
        self.assertEqual(parsed.currency, "EUR")

    def test_comma_thousands(self) -> None:
        """A comma followed by three digits groups thousands."""
        parsed = parse_price("1,299")
        assert parsed is not None
        self.assertEqual(parsed.value, 1299.0)

    def test_multiple_dots_are_grouping(self) -> None:
        """1.234.567 is read as a whole number."""
        parsed = parse_price("1.234.567")
        assert parsed is not None
        self.assertEqual(parsed.value, 1234567.0)

    def test_no_number(self) -> None:
        """Text without digits yields None."""
        self.assertIsNone(parse_price("Free"))
        self.assertIsNone(parse_price(""))
        self.assertIsNone(parse_price(None))

    def test_first_number_only(self) -> None:
        """Separate numbers are not glued together."""
        parsed = parse_price("$12.99 3 for 2")
        assert parsed is not None
        self.assertAlmostEqual(parsed.value, 12.99)

    def test_no_break_space_groups_thousands(self) -> None:
        """A no-break space between digit groups is a thousands mark."""
        parsed = parse_price("1\u00a0234,56 €")
        assert parsed is not None
        self.assertAlmostEqual(parsed.value, 1234.56)

    def test_plain_space_separates_numbers(self) -> None:
        """A price followed by a count is not one larger number."""
        parsed = parse_price("$19 500 sold")
        assert parsed is not None
        self.assertEqual(parsed.value, 19.0)


class TestDetectCurrency(unittest.TestCase):
    """Currency inference order."""

    def test_multi_char_symbol_before_dollar(self) -> None:
        """C$ is Canadian, not US dollars."""
        self.assertEqual(detect_currency("C$ 20"), "CAD")

    def test_iso_code(self) -> None:
        """ISO codes are recognised."""
        self.assertEqual(detect_currency("20 AED"), "AED")

    def test_pound_symbol(self) -> None:
        """£ maps to GBP."""
        self.assertEqual(detect_currency("£5"), "GBP")

    def test_code_inside_word_ignored(self) -> None:
        """Codes embedded in longer words do not match."""
        self.assertIsNone(detect_currency("MUSDX 20"))


class TestJsonLd(unittest.TestCase):
    """Structured data strategy."""

    def test_product_offer(self) -> None:
        """Product.offers.price is read with high confidence."""
        html = _json_ld({
            "@type": "Product",
            "name": "Widget",
            "offers": {"@type": "Offer", "price": "49.99",
                       "priceCurrency": "USD"},
        })
        result = extract_price(html)
        self.assertEqual(result.value, 49.99)
        self.assertEqual(result.currency, "USD")
        self.assertEqual(result.confidence, CONFIDENCE_HIGH)
        self.assertEqual(result.source, "json-ld")

    def test_graph_and_list_type(self) -> None:
        """Items inside @graph with a list @type are found."""
        html = _json_ld({
            "@graph": [
                {"@type": "WebPage"},
                {"@type": ["Product", "Thing"],
                 "offers": [{"price": 15, "priceCurrency": "GBP"}]},
            ]
        })
        result = extract_price(html)
        self.assertEqual(result.value, 15.0)
        self.assertEqual(result.currency, "GBP")

    def test_aggregate_offer_low_price(self) -> None:
        """AggregateOffer falls back to lowPrice."""
        html = _json_ld({
            "@type": "Product",
            "offers": {"@type": "AggregateOffer", "lowPrice": "9.50"},
        })
        self.assertEqual(extract_price(html).value, 9.50)

    def test_malformed_block_skipped(self) -> None:
        """Invalid JSON does not abort extraction."""
        html = (
            '<script type="application/ld+json">{not json</script>'
            '<meta property="og:price:amount" content="19.50">'
        )
        result = extract_price(html)
        self.assertEqual(result.value, 19.50)
        self.assertEqual(result.source, "meta-tag")

    def test_out_of_range_rejected(self) -> None:
        """Values outside the plausible range are ignored."""
        html = _json_ld({"@type": "Offer", "price": "5000"})
        result = extract_price(html, max_price=1000)
        self.assertEqual(result.confidence, CONFIDENCE_NONE)


class TestMetaAndSelectors(unittest.TestCase):
    """Meta tag and CSS selector strategies."""

    def test_meta_with_currency_tag(self) -> None:
        """Currency comes from the companion meta tag."""
        html = (
            '<meta property="og:price:amount" content="19.50">'
            '<meta property="og:price:currency" content="EUR">'
        )
        result = extract_price(html)
        self.assertEqual(result.value, 19.50)
        self.assertEqual(result.currency, "EUR")
        self.assertEqual(result.confidence, CONFIDENCE_HIGH)

    def test_price_class(self) -> None:
        """A .price element yields medium confidence."""
        html = '<div><span class="price">$24.00</span></div>'
        result = extract_price(html)
        self.assertEqual(result.value, 24.0)
        self.assertEqual(result.currency, "USD")
        self.assertEqual(result.confidence, CONFIDENCE_MEDIUM)

    def test_data_attribute_preferred(self) -> None:
        """data-price wins over the element's visible text."""
        html = '<span data-price="30.00">Now only thirty-ish!</span>'
        result = extract_price(html)
        self.assertEqual(result.value, 30.0)
        self.assertEqual(result.source, "selector:[data-price]")

    def test_nested_count_not_merged(self) -> None:
        """Child text after the price does not extend the amount."""
        html = '<span class="price">$19 <small>500 sold</small></span>'
        result = extract_price(html)
        self.assertEqual(result.value, 19.0)
        self.assertEqual(result.confidence, CONFIDENCE_MEDIUM)


class TestTextFallback(unittest.TestCase):
    """Regex strategy over normalised text."""

    def test_most_frequent_amount_wins(self) -> None:
        """The most repeated amount is chosen with low confidence."""
        text = "Only $12.00 today\nWas $15.00\nNow $12.00"
        result = extract_price(f"<p>{text}</p>", text=text)
        self.assertEqual(result.value, 12.0)
        self.assertEqual(result.confidence, CONFIDENCE_LOW)
        self.assertEqual(result.source, "regex")

    def test_amount_does_not_span_lines(self) -> None:
        """A number on the next line is not read as a digit group."""
        text = "Widget\n$29\n250 ml bottle"
        result = extract_price(f"<p>{text}</p>", text=text)
        self.assertEqual(result.value, 29.0)
        self.assertEqual(result.confidence, CONFIDENCE_LOW)

    def test_requires_text(self) -> None:
        """Without normalised text the regex pass is skipped."""
        result = extract_price("<p>Only $12.00 today</p>")
        self.assertEqual(result.confidence, CONFIDENCE_NONE)

    def test_nothing_found(self) -> None:
        """A page without prices reports confidence none."""
        result = extract_price("<p>About us</p>", text="About us")
        self.assertIsNone(result.value)
        self.assertEqual(result.confidence, CONFIDENCE_NONE)


class TestConfidenceOrdering(unittest.TestCase):
    """Higher-confidence strategies win over lower ones."""

    def test_json_ld_beats_conflicting_text(self) -> None:
        """JSON-LD is preferred to a different regex price."""
        html = (
            _json_ld({"@type": "Offer", "price": "50.00"})
            + '<p>Sale $39.99 today only, $39.99!</p>'
        )
        result = extract_price(
            html, text="Sale $39.99 today only, $39.99!",
        )
        self.assertEqual(result.value, 50.0)
        self.assertEqual(result.confidence, CONFIDENCE_HIGH)

    def test_json_ld_beats_selector(self) -> None:
        """JSON-LD is preferred to a .price element."""
        html = (
            _json_ld({"@type": "Offer", "price": 80})
            + '<span class="price">$70.00</span>'
        )
        self.assertEqual(extract_price(html).value, 80.0)


if __name__ == "__main__":
    unittest.main()
