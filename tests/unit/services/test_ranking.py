"""Unit tests for the ranking engine."""

from typing import Any

import numpy as np
import pytest

from feed_service.models import CatalogProduct, DedupedProduct, Dimension
from feed_service.services.dedupe import dedupe
from feed_service.services.ranking import (
    FEATURES,
    RankingEngine,
    product_keys,
    rank,
    trend_feature,
)
from shared.constants import FEATURE_WEIGHTS


def make(product_id: int, **fields: Any) -> CatalogProduct:
    row = {
        "id": product_id,
        "name": f"Produto {product_id}",
        "store_name": f"Loja {product_id % 3}",
        **fields,
    }
    return CatalogProduct.model_validate(row)


@pytest.fixture
def catalog() -> list[CatalogProduct]:
    categories = ["camisas", "vestidos", "calcados", "bolsas", "vestidos"]
    return [make(i, category=categories[i % 5], price=20 * (i + 1)) for i in range(10)]


@pytest.fixture
def deterministic() -> RankingEngine:
    return RankingEngine(epsilon=0.0, jitter=0.0, rng=np.random.default_rng(0))


class TestFeatures:
    """Tests for per-item feature extraction."""

    def test_product_keys(self) -> None:
        product = make(5, categories="Vestidos,Festa", gender="Female", price=120)
        keys = product_keys(product)
        assert keys[Dimension.CATEGORY] == "vestidos"
        assert keys[Dimension.GENDER] == "female"
        assert keys[Dimension.PRICE] == "100-200"
        assert keys[Dimension.PRODUCT] == "5"
        assert keys[Dimension.SIZE] == ""

    def test_trend_uses_stronger_signal(self) -> None:
        product = make(1, view_count=25)
        assert trend_feature(product, {}, 1.0) == pytest.approx(0.5)
        assert trend_feature(product, {"1": 4.0}, 4.0) == pytest.approx(1.0)

    def test_server_views_saturate(self) -> None:
        assert trend_feature(make(1, view_count=500), {}, 1.0) == 1.0

    def test_features_normalized_by_dimension_max(self, deterministic: RankingEngine) -> None:
        products = [make(1, category="vestidos"), make(2, category="camisas")]
        prefs = {Dimension.CATEGORY: {"vestidos": 4.0, "camisas": 2.0}}
        scored = deterministic.score_all(products, prefs, {}, session_seed=1)

        assert scored[0].features["category"] == pytest.approx(1.0)
        assert scored[1].features["category"] == pytest.approx(0.5)

    def test_small_weights_not_inflated(self, deterministic: RankingEngine) -> None:
        prefs = {Dimension.STORE: {"loja 1": 0.5}}
        scored = deterministic.score_all([make(1)], prefs, {}, session_seed=1)
        assert scored[0].features["store"] == pytest.approx(0.5)

    def test_size_feature_is_inert(self, deterministic: RankingEngine) -> None:
        prefs = {Dimension.SIZE: {"m": 10.0}}
        scored = deterministic.score_all([make(1, sizes="M")], prefs, {}, session_seed=1)
        assert scored[0].features["size"] == 0.0
        assert scored[0].score == 0.0

    def test_jitter_is_bounded(self) -> None:
        engine = RankingEngine(epsilon=0.0, jitter=0.08)
        scored = engine.score_all([make(i) for i in range(50)], {}, {}, session_seed=77)
        for item in scored:
            assert 0.0 <= item.score < 0.08


class TestRank:
    """Tests for score ordering."""

    def test_end_to_end_preferred_category_first(
        self, catalog: list[CatalogProduct], deterministic: RankingEngine
    ) -> None:
        prefs = {Dimension.CATEGORY: {"vestidos": 5.0}}
        ranked = deterministic.rank(catalog, prefs, {}, session_seed=3)

        preferred = [p.id for p in catalog if p.category == "vestidos"]
        assert [p.id for p in ranked[: len(preferred)]] == preferred
        # remaining items keep their relative input order
        rest = [p.id for p in catalog if p.category != "vestidos"]
        assert [p.id for p in ranked[len(preferred):]] == rest
        assert deterministic.last_pass_explored is False

    def test_descending_scores(self, catalog: list[CatalogProduct]) -> None:
        engine = RankingEngine(epsilon=0.0, jitter=0.08)
        prefs = {Dimension.CATEGORY: {"vestidos": 5.0, "camisas": 2.0}}
        ranked = engine.rank(catalog, prefs, {"3": 4}, session_seed=11)

        scores = {r.item.id: r.score for r in engine.score_all(catalog, prefs, {"3": 4}, 11)}
        ordered = [scores[p.id] for p in ranked]
        assert ordered == sorted(ordered, reverse=True)

    def test_returns_permutation(self, catalog: list[CatalogProduct]) -> None:
        engine = RankingEngine(epsilon=1.0, rng=np.random.default_rng(5))
        ranked = engine.rank(catalog, {}, {}, session_seed=1)
        assert sorted(p.id for p in ranked) == sorted(p.id for p in catalog)

    def test_works_on_deduped_products(self, deterministic: RankingEngine) -> None:
        rows = [
            make(1, name="Saia", brand="A", price=5),
            make(2, name="Saia", brand="A", price=1),
            make(3, name="Saia", brand="B", price=9),
        ]
        prefs = {Dimension.PRODUCT: {"3": 1.0}}
        ranked = deterministic.rank(dedupe(rows), prefs, {}, session_seed=1)

        assert all(isinstance(item, DedupedProduct) for item in ranked)
        assert [item.id for item in ranked] == [3, 2]

    def test_score_monotone_in_each_weight(self, catalog: list[CatalogProduct]) -> None:
        prefs = {
            Dimension.CATEGORY: {"vestidos": 2.0},
            Dimension.STORE: {"loja 1": 1.0},
            Dimension.PRICE: {"0-50": 3.0},
        }
        views = {"4": 2}
        base = RankingEngine(epsilon=0.0, jitter=0.0).score_all(catalog, prefs, views, 9)

        for name in FEATURES:
            heavier = RankingEngine(
                weights={name: FEATURE_WEIGHTS[name] + 1.0}, epsilon=0.0, jitter=0.0
            ).score_all(catalog, prefs, views, 9)
            for before, after in zip(base, heavier):
                assert after.score >= before.score

    def test_malformed_signals_are_ignored(
        self, catalog: list[CatalogProduct], deterministic: RankingEngine
    ) -> None:
        prefs = {"cat": {"vestidos": "lots", "camisas": float("nan")}, "store": None}
        views = {"1": "many", "2": -3, "3": True}
        ranked = deterministic.rank(catalog, prefs, views, session_seed=1)
        assert [p.id for p in ranked] == [p.id for p in catalog]

    def test_internal_error_keeps_input_order(self, deterministic: RankingEngine) -> None:
        items = [object(), object()]
        assert deterministic.rank(items, {}, {}, session_seed=1) == items

    def test_empty(self, deterministic: RankingEngine) -> None:
        assert deterministic.rank([], {}, {}, session_seed=1) == []

    def test_module_level_rank(self, catalog: list[CatalogProduct]) -> None:
        prefs = {Dimension.CATEGORY: {"bolsas": 1.0}}
        ranked = rank(catalog, prefs, {}, 1, epsilon=0.0, jitter=0.0)
        assert ranked[0].category == "bolsas"


class TestExplore:
    """Tests for exploratory reinsertion near the top."""

    def test_never_explores_with_zero_epsilon(self, catalog: list[CatalogProduct]) -> None:
        engine = RankingEngine(epsilon=0.0, rng=np.random.default_rng(1))
        for _ in range(20):
            engine.rank(catalog, {}, {}, session_seed=1)
            assert engine.last_pass_explored is False

    def test_small_lists_are_not_reshuffled(self) -> None:
        products = [make(i) for i in range(8)]
        engine = RankingEngine(epsilon=1.0, jitter=0.0, rng=np.random.default_rng(2))
        ranked = engine.rank(products, {}, {}, session_seed=1)

        assert engine.last_pass_explored is True
        assert [p.id for p in ranked] == [p.id for p in products]

    @pytest.mark.parametrize("seed", range(10))
    def test_reinsertion_stays_near_the_top(self, seed: int) -> None:
        products = [make(i) for i in range(40)]
        engine = RankingEngine(epsilon=1.0, jitter=0.0, rng=np.random.default_rng(seed))
        ranked = engine.rank(products, {}, {}, session_seed=1)

        window = min(30, len(products))
        head = [p.id for p in ranked[:window]]
        assert sorted(head) == list(range(window))
        assert [p.id for p in ranked[window:]] == list(range(window, 40))

    def test_exploration_moves_items_forward(self) -> None:
        products = [make(i) for i in range(16)]
        engine = RankingEngine(epsilon=1.0, jitter=0.0, rng=np.random.default_rng(4))
        ranked = engine.rank(products, {}, {}, session_seed=1)

        # two picks for 16 items, each taken from position 4 or later
        assert ranked[1].id >= 4
        assert ranked[3].id >= 3
        assert ranked[0].id == 0

    def test_explore_boosts_trend(self) -> None:
        products = [make(1, view_count=50)]
        plain = RankingEngine(epsilon=0.0, jitter=0.0).score_all(products, {}, {}, 1)
        boosted = RankingEngine(epsilon=0.0, jitter=0.0).score_all(
            products, {}, {}, 1, explore=True
        )
        assert boosted[0].score == pytest.approx(plain[0].score * 2.2)
