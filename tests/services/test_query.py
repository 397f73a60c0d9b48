"""Tests for the query engine: LabelFetcher and QueryService."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from dossierctl.domain.cursor import encode_cursor
from dossierctl.infrastructure.store import Store
from dossierctl.services.query import LabelFetcher, QuerySpec, QueryService
from tests.conftest import append, destinations, make_label


def _fetch(store: Store) -> LabelFetcher:
    return LabelFetcher(store)


# ---------------------------------------------------------------------------
# Fluent builder
# ---------------------------------------------------------------------------


class TestLabelFetcher:
    def test_each_call_returns_new_fetcher(self, store: Store) -> None:
        base = _fetch(store)
        narrowed = base.cid("a").which("expanded")
        assert base.spec == QuerySpec()
        assert narrowed.spec.content_id == "a"
        assert narrowed.spec.which == "expanded"

    def test_next_without_cursor_counts_pages(self, store: Store) -> None:
        fetcher = _fetch(store).cid("a").next().next()
        assert fetcher.spec.skip_pages == 2
        assert fetcher.spec.cursor is None

    def test_next_with_cursor_resets_skip(self, store: Store) -> None:
        fetcher = _fetch(store).cid("a").next().next("tok")
        assert fetcher.spec.skip_pages == 0
        assert fetcher.spec.cursor == "tok"


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


class TestConnected:
    def test_direct_positive(self, store: Store) -> None:
        append(store, make_label("a", "b", annotator="tester"))
        result = _fetch(store).cid("a").which("connected").get()
        assert result.ok
        assert result.op == "query_labels"
        assert destinations(result) == ["b"]
        item = result.data["items"][0]
        assert item["inferred"] is False
        assert item["annotator_id"] == "tester"

    def test_negative_not_connected(self, store: Store) -> None:
        append(store, make_label("x", "y", "negative", annotator="tester"))
        result = _fetch(store).cid("x").which("connected").get()
        assert result.ok
        assert "y" not in destinations(result)

    def test_transitive_rows_inferred(self, store: Store) -> None:
        append(
            store,
            make_label("a", "b", minute=1),
            make_label("c", "b", annotator="bob", minute=2),
        )
        result = _fetch(store).cid("a").get()
        assert destinations(result) == ["b", "c"]
        inferred = result.data["items"][1]
        assert inferred["inferred"] is True
        assert inferred["coref_value"] == "positive"
        assert inferred["annotator_id"] == "bob"

    def test_one_row_per_explicit_label(self, store: Store) -> None:
        append(
            store,
            make_label("a", "b", annotator="bob", minute=2),
            make_label("a", "b", minute=1),
        )
        result = _fetch(store).cid("a").get()
        assert destinations(result) == ["b", "b"]
        assert [i["annotator_id"] for i in result.data["items"]] == ["alice", "bob"]

    def test_subtopics_stay_apart(self, store: Store) -> None:
        append(
            store,
            make_label("A", "B", sub1="A1", sub2="B2", annotator="tester"),
            make_label("B", "C", sub1="B2", sub2="C3", annotator="tester"),
            make_label("B", "C", sub1="B4", sub2="C5", annotator="tester"),
        )
        result = _fetch(store).cid("A").subtopic("A1").which("connected").get()
        found = destinations(result)
        assert "C#C3" in found
        assert "C#C5" not in found
        assert found == ["B#B2", "C#C3"]

    def test_whole_item_anchor_covers_its_subtopics(self, store: Store) -> None:
        append(store, make_label("a", "x", sub1="s1"), make_label("a", "y", sub1="s2"))
        assert destinations(_fetch(store).cid("a").get()) == ["x", "y"]
        assert destinations(_fetch(store).cid("a").subtopic("s2").get()) == ["y"]

    def test_unknown_anchor_empty(self, store: Store) -> None:
        result = _fetch(store).cid("nobody").get()
        assert result.ok
        assert result.data["items"] == []
        assert result.data["has_more"] is False


class TestNegativeInference:
    def test_negative_through_class(self, store: Store) -> None:
        append(
            store,
            make_label("a", "b", annotator="tester"),
            make_label("b", "c", "negative", annotator="tester"),
        )
        result = _fetch(store).cid("a").which("negative-inference").get()
        assert result.ok
        assert "c" in destinations(result)
        item = result.data["items"][0]
        assert item["coref_value"] == "negative"
        assert item["inferred"] is True

    def test_explicit_pairs_excluded(self, store: Store) -> None:
        append(store, make_label("a", "b"), make_label("b", "c", "negative"))
        result = _fetch(store).cid("b").which("negative-inference").get()
        assert destinations(result) == []

    def test_follows_later_merges(self, store: Store) -> None:
        append(
            store,
            make_label("a", "b", "negative"),
            make_label("c", "a", minute=1),
            make_label("d", "b", minute=2),
        )
        result = _fetch(store).cid("c").which("negative-inference").get()
        assert destinations(result) == ["b", "d"]


class TestExpanded:
    @pytest.fixture
    def bridged(self, store: Store) -> Store:
        append(
            store,
            make_label("a", "c"),
            make_label("c", "x", sub1="c3", minute=1),
            make_label("c", "y", sub1="c5", minute=2),
            make_label("a", "c", "negative", sub2="c5", minute=3),
        )
        return store

    def test_connected_does_not_bridge(self, bridged: Store) -> None:
        assert destinations(_fetch(bridged).cid("a").get()) == ["c"]

    def test_single_hop_to_sibling_subtopics(self, bridged: Store) -> None:
        result = _fetch(bridged).cid("a").which("expanded").get()
        assert destinations(result) == ["c", "c#c3", "x"]

    def test_cannot_link_blocks_bridge(self, bridged: Store) -> None:
        found = destinations(_fetch(bridged).cid("a").which("expanded").get())
        assert "c#c5" not in found
        assert "y" not in found


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


class TestPagination:
    @pytest.fixture
    def star(self, store: Store) -> Store:
        append(store, *(make_label("p", cid, minute=i) for i, cid in enumerate("abcde")))
        return store

    def test_pages_concatenate_to_full_result(self, star: Store) -> None:
        full = destinations(_fetch(star).cid("p").get())
        seen: list[str] = []
        cursor = None
        while True:
            fetcher = _fetch(star).cid("p").perpage(2)
            if cursor is not None:
                fetcher = fetcher.next(cursor)
            page = fetcher.get()
            seen.extend(destinations(page))
            if not page.data["has_more"]:
                break
            cursor = page.data["cursor"]
        assert seen == full == ["a", "b", "c", "d", "e"]

    def test_cursor_survives_growth(self, star: Store) -> None:
        first = _fetch(star).cid("p").perpage(2).get()
        assert destinations(first) == ["a", "b"]
        assert first.data["has_more"] is True

        append(star, make_label("p", "a0", minute=9), make_label("p", "f", minute=9))
        second = _fetch(star).cid("p").perpage(2).next(first.data["cursor"]).get()
        assert destinations(second) == ["c", "d"]
        third = _fetch(star).cid("p").perpage(2).next(second.data["cursor"]).get()
        assert destinations(third) == ["e", "f"]
        assert third.data["has_more"] is False

    def test_next_without_cursor_skips_pages(self, star: Store) -> None:
        assert destinations(_fetch(star).cid("p").perpage(1).next().get()) == ["b"]
        assert destinations(_fetch(star).cid("p").perpage(2).next().next().get()) == ["e"]

    def test_next_without_perpage_is_empty(self, star: Store) -> None:
        result = _fetch(star).cid("p").next().get()
        assert result.ok
        assert result.data["items"] == []

    def test_empty_page_keeps_cursor(self, star: Store) -> None:
        last = _fetch(star).cid("p").perpage(5).get()
        after = _fetch(star).cid("p").perpage(5).next(last.data["cursor"]).get()
        assert after.data["items"] == []
        assert after.data["cursor"] == last.data["cursor"]

    def test_tied_rows_page_without_loss(self, store: Store) -> None:
        repeated = make_label("p", "a", annotator="tester")
        append(store, repeated)
        append(store, repeated)
        append(store, make_label("p", "b", minute=1), make_label("p", "b", minute=1))
        full = _fetch(store).cid("p").get().data["items"]
        assert len(full) == 4

        paged: list[dict[str, object]] = []
        cursor = None
        while True:
            fetcher = _fetch(store).cid("p").perpage(1)
            if cursor is not None:
                fetcher = fetcher.next(cursor)
            page = fetcher.get()
            paged.extend(page.data["items"])
            if not page.data["has_more"]:
                break
            cursor = page.data["cursor"]
        assert paged == full

    def test_cursor_from_older_key_shape_rejected(self, store: Store) -> None:
        append(store, make_label("p", "a"))
        token = encode_cursor((("a", 0, ""), "", "alice", ("p", 0, "")))
        result = _fetch(store).cid("p").next(token).get()
        assert not result.ok
        assert _code(result) == "INVALID_CURSOR"


# ---------------------------------------------------------------------------
# Errors and metadata
# ---------------------------------------------------------------------------


def _code(result: object) -> str:
    error = result.error  # type: ignore[attr-defined]
    assert error is not None
    return str(error.code)


class TestQueryErrors:
    def test_missing_cid(self, store: Store) -> None:
        assert _code(_fetch(store).get()) == "INVALID_QUERY"

    def test_unknown_predicate(self, store: Store) -> None:
        result = _fetch(store).cid("a").which("sideways").get()
        assert _code(result) == "INVALID_QUERY"
        assert "sideways" in result.error.message  # type: ignore[union-attr]

    @pytest.mark.parametrize("perpage", [0, -3, 1001])
    def test_perpage_out_of_range(self, store: Store, perpage: int) -> None:
        assert _code(_fetch(store).cid("a").perpage(perpage).get()) == "INVALID_QUERY"

    def test_garbage_cursor(self, store: Store) -> None:
        assert _code(_fetch(store).cid("a").next("!!!").get()) == "INVALID_CURSOR"

    def test_wrong_shape_cursor(self, store: Store) -> None:
        token = encode_cursor(("a", 1))
        assert _code(_fetch(store).cid("a").next(token).get()) == "INVALID_CURSOR"

    def test_storage_fault(self, store: Store, monkeypatch: pytest.MonkeyPatch) -> None:
        def boom() -> None:
            raise OperationalError("SELECT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(store.graph, "snapshot", boom)
        result = _fetch(store).cid("a").get()
        assert _code(result) == "STORE_ERROR"
        assert "disk I/O error" in result.error.detail["reason"]  # type: ignore[union-attr]

    def test_run_accepts_spec_directly(self, store: Store) -> None:
        append(store, make_label("a", "b"))
        result = QueryService(store).run(QuerySpec(content_id="a"))
        assert destinations(result) == ["b"]


class TestQueryMeta:
    def test_graph_version(self, store: Store) -> None:
        append(store, make_label("a", "b"), make_label("b", "c"))
        result = _fetch(store).cid("a").get()
        assert result.meta is not None
        assert result.meta["graph_version"] == 2
        assert "contradictions" not in result.meta

    def test_contradictions_touching_anchor(self, store: Store) -> None:
        append(store, make_label("p", "q", "negative"), make_label("p", "q", minute=1))
        result = _fetch(store).cid("p").get()
        assert result.ok
        assert result.meta is not None
        assert len(result.meta["contradictions"]) == 1
        assert result.meta["contradictions"][0]["coref_value"] == "positive"
