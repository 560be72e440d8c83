from ccem.usage.formatting import format_cost, format_tokens, get_total_tokens
from ccem.usage.models import TokenUsage, TokenUsageWithCost


class TestFormatTokens:
    def test_millions(self):
        assert format_tokens(1_500_000) == "1.5M"
        assert format_tokens(2_000_000) == "2.0M"

    def test_thousands(self):
        assert format_tokens(1_500) == "1.5K"
        assert format_tokens(50_000) == "50.0K"

    def test_small_numbers(self):
        assert format_tokens(500) == "500"
        assert format_tokens(0) == "0"


class TestFormatCost:
    def test_large_costs(self):
        assert format_cost(10.5) == "$10.50"
        assert format_cost(1.234) == "$1.23"

    def test_small_costs(self):
        assert format_cost(0.05) == "$0.05"
        assert format_cost(0.01) == "$0.01"

    def test_very_small_costs(self):
        assert format_cost(0.001) == "$0.0010"
        assert format_cost(0.0001) == "$0.0001"
        assert format_cost(0) == "$0.0000"


class TestTotalTokens:
    def test_sums_all_categories(self):
        usage = TokenUsage(input_tokens=100, output_tokens=50, cache_read_tokens=20, cache_creation_tokens=10)
        assert get_total_tokens(usage) == 180

    def test_zero(self):
        assert get_total_tokens(TokenUsage()) == 0

    def test_ignores_cost(self):
        assert get_total_tokens(TokenUsageWithCost(input_tokens=1, cost=99.0)) == 1
