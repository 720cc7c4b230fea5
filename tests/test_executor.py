"""Tests for query execution."""

import asyncio
import threading

import pytest

from gql_pyengine.core.config import EngineConfig
from gql_pyengine.core.context import ExecutionContext
from gql_pyengine.core.document import Directive
from gql_pyengine.core.engine import graphql
from gql_pyengine.core.errors import ExecutionError
from gql_pyengine.core.executor import Executor, default_resolver, should_include
from gql_pyengine.core.parser import parse
from gql_pyengine.core.scalars import ID, Int, String
from gql_pyengine.core.types import (
    Enum,
    Field,
    Interface,
    List,
    NonNull,
    Object,
    Schema,
    Union,
    implement,
)


def const(value):
    """Resolver returning a fixed value."""
    return lambda _ctx, _source, _args, _selection_set: value


def query_schema(**fields):
    return Schema(query=Object("Query", fields=fields))


class TestHelpers:
    """Tests for the module-level helpers."""

    def test_should_include(self):
        assert should_include([])
        assert not should_include([Directive("skip", {"if": True})])
        assert should_include([Directive("skip", {"if": False})])
        assert not should_include([Directive("include", {"if": False})])
        assert not should_include([Directive("include", {"if": True}), Directive("skip", {"if": True})])

    def test_default_resolver(self):
        class Source:
            name = "attr"

        assert default_resolver({"name": "key"}, "name") == "key"
        assert default_resolver(Source(), "name") == "attr"
        assert default_resolver(Source(), "missing") is None
        assert default_resolver(None, "name") is None


class TestBasicExecution:
    """Tests for plain field resolution."""

    @pytest.mark.asyncio
    async def test_hello_world(self):
        schema = query_schema(hello=Field(String, resolver=const("world")))
        result = await graphql(schema, "{ hello }")
        assert result.to_dict() == {"data": {"hello": "world"}, "errors": None}

    @pytest.mark.asyncio
    async def test_async_resolver(self):
        async def resolve(_ctx, _source, _args, _selection_set):
            await asyncio.sleep(0)
            return "async"

        schema = query_schema(value=Field(String, resolver=resolve))
        result = await graphql(schema, "{ value }")
        assert result.data == {"value": "async"}

    @pytest.mark.asyncio
    async def test_arguments_and_variables(self):
        schema = query_schema(
            double=Field(Int, args={"n": NonNull(Int)}, resolver=lambda _c, _s, args, _ss: args["n"] * 2)
        )
        result = await graphql(schema, "query Q($n: Int!) { double(n: $n) }", {"n": 21})
        assert result.data == {"double": 42}

    @pytest.mark.asyncio
    async def test_argument_defaults(self):
        schema = query_schema(
            echo=Field(String, args={"word": String}, defaults={"word": "hi"},
                       resolver=lambda _c, _s, args, _ss: args["word"])
        )
        result = await graphql(schema, "{ echo }")
        assert result.data == {"echo": "hi"}

    @pytest.mark.asyncio
    async def test_parse_arguments(self):
        class Page:
            def __init__(self, first, after):
                self.first = first
                self.after = after

        def resolve(_ctx, _source, page, _selection_set):
            return f"{page.first}@{page.after}"

        schema = query_schema(
            page=Field(
                String,
                args={"first": Int, "after": String},
                defaults={"after": "start"},
                parse_arguments=lambda args: Page(**args),
                resolver=resolve,
            )
        )
        result = await graphql(schema, "{ page(first: 5) }")
        assert result.data == {"page": "5@start"}

    @pytest.mark.asyncio
    async def test_aliases(self):
        schema = query_schema(
            greet=Field(String, args={"name": String}, resolver=lambda _c, _s, args, _ss: f"hi {args['name']}")
        )
        result = await graphql(schema, '{ a: greet(name: "a") b: greet(name: "b") }')
        assert result.data == {"a": "hi a", "b": "hi b"}

    @pytest.mark.asyncio
    async def test_default_resolver_on_nested_objects(self):
        class Pet:
            def __init__(self, name):
                self.name = name

        pet = Object("Pet", fields={"name": Field(String)})
        owner = Object("Owner", fields={"name": Field(String), "pet": Field(pet)})
        schema = query_schema(owner=Field(owner, resolver=const({"name": "Ann", "pet": Pet("Rex")})))
        result = await graphql(schema, "{ owner { name pet { name } } }")
        assert result.data == {"owner": {"name": "Ann", "pet": {"name": "Rex"}}}

    @pytest.mark.asyncio
    async def test_typename(self):
        user = Object("User", fields={"id": Field(ID)})
        schema = query_schema(me=Field(user, resolver=const({"id": 1})))
        result = await graphql(schema, "{ __typename me { __typename id } }")
        assert result.data == {"__typename": "Query", "me": {"__typename": "User", "id": "1"}}

    @pytest.mark.asyncio
    async def test_root_value(self):
        schema = query_schema(version=Field(String))
        result = await graphql(schema, "{ version }", root_value={"version": "1.2"})
        assert result.data == {"version": "1.2"}

    @pytest.mark.asyncio
    async def test_context_reaches_resolvers(self):
        schema = query_schema(
            viewer=Field(String, resolver=lambda ctx, _s, _a, _ss: ctx.value["user"])
        )
        ctx = ExecutionContext(value={"user": "ann"})
        result = await graphql(schema, "{ viewer }", context=ctx)
        assert result.data == {"viewer": "ann"}

    @pytest.mark.asyncio
    async def test_resolver_receives_selection_set(self):
        seen = []

        def resolve(_ctx, _source, _args, selection_set):
            seen.append([s.name for s in selection_set.selections])
            return {"id": 1, "name": "n"}

        user = Object("User", fields={"id": Field(ID), "name": Field(String)})
        schema = query_schema(me=Field(user, resolver=resolve))
        await graphql(schema, "{ me { id name } }")
        assert seen == [["id", "name"]]

    @pytest.mark.asyncio
    async def test_enum_output_and_argument(self):
        color = Enum("Color", {"RED": 1, "GREEN": 2})
        schema = query_schema(
            same=Field(color, args={"c": color}, resolver=lambda _c, _s, args, _ss: args["c"]),
            all=Field(List(color), resolver=const([2, 1])),
        )
        result = await graphql(schema, "{ same(c: GREEN) all }")
        assert result.data == {"same": "GREEN", "all": ["GREEN", "RED"]}


class TestSelectionMerging:
    """Tests for field collection and merging."""

    @pytest.mark.asyncio
    async def test_identical_selections_resolve_once(self):
        calls = []

        def resolve(_ctx, _source, args, _selection_set):
            calls.append(args)
            return f"foo{args['x']}"

        schema = query_schema(foo=Field(String, args={"x": Int}, resolver=resolve))
        result = await graphql(schema, "{ a: foo(x: 1) a: foo(x: 1) }")
        assert result.data == {"a": "foo1"}
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_sub_selections_are_merged(self):
        user = Object("User", fields={"id": Field(ID), "name": Field(String)})
        schema = query_schema(user=Field(user, resolver=const({"id": 1, "name": "Ann"})))
        result = await graphql(schema, "{ user { id } user { name } }")
        assert result.data == {"user": {"id": "1", "name": "Ann"}}

    @pytest.mark.asyncio
    async def test_skip_directive(self):
        schema = query_schema(a=Field(String, resolver=const("A")), b=Field(String, resolver=const("B")))
        result = await graphql(schema, "{ a @skip(if: true) b }")
        assert result.data == {"b": "B"}

    @pytest.mark.asyncio
    async def test_include_directive_with_variable(self):
        schema = query_schema(a=Field(String, resolver=const("A")), b=Field(String, resolver=const("B")))
        source = "query Q($withA: Boolean!) { a @include(if: $withA) b }"
        assert (await graphql(schema, source, {"withA": False})).data == {"b": "B"}
        assert (await graphql(schema, source, {"withA": True})).data == {"a": "A", "b": "B"}

    @pytest.mark.asyncio
    async def test_skipped_fragment(self):
        schema = query_schema(a=Field(String, resolver=const("A")), b=Field(String, resolver=const("B")))
        result = await graphql(schema, "{ b ...F @skip(if: true) } fragment F on Query { a }")
        assert result.data == {"b": "B"}

    @pytest.mark.asyncio
    async def test_fragment_fields_keep_selection_order(self):
        schema = query_schema(
            a=Field(String, resolver=const("A")),
            b=Field(String, resolver=const("B")),
            c=Field(String, resolver=const("C")),
        )
        result = await graphql(schema, "{ c ...F a } fragment F on Query { b a }")
        assert list(result.data) == ["c", "b", "a"]


class TestConcurrency:
    """Tests for concurrent resolution and ordering."""

    @pytest.mark.asyncio
    async def test_order_preserved_when_resolvers_finish_out_of_order(self):
        finished = []

        def delayed(name, delay):
            async def resolve(_ctx, _source, _args, _selection_set):
                await asyncio.sleep(delay)
                finished.append(name)
                return name

            return resolve

        schema = query_schema(a=Field(String, resolver=delayed("a", 0.05)), b=Field(String, resolver=delayed("b", 0)))
        result = await graphql(schema, "{ a b }")
        assert finished == ["b", "a"]
        assert list(result.data) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_list_order_preserved(self):
        async def resolve_label(_ctx, source, _args, _selection_set):
            await asyncio.sleep(0.01 * (3 - source["n"]))
            return f"item{source['n']}"

        item = Object("Item", fields={"label": Field(String, resolver=resolve_label)})
        schema = query_schema(items=Field(List(item), resolver=const([{"n": 0}, {"n": 1}, {"n": 2}])))
        result = await graphql(schema, "{ items { label } }")
        assert result.data == {"items": [{"label": "item0"}, {"label": "item1"}, {"label": "item2"}]}

    @pytest.mark.asyncio
    async def test_siblings_run_concurrently(self):
        both_started = asyncio.Event()
        started = []

        async def resolve(_ctx, _source, _args, _selection_set):
            started.append(1)
            if len(started) == 2:
                both_started.set()
            await asyncio.wait_for(both_started.wait(), timeout=1)
            return "ok"

        schema = query_schema(a=Field(String, resolver=resolve), b=Field(String, resolver=resolve))
        result = await graphql(schema, "{ a b }")
        assert result.data == {"a": "ok", "b": "ok"}
        assert result.errors == []

    @pytest.mark.asyncio
    async def test_mutations_run_serially(self):
        events = []

        def mutation(name, delay):
            async def resolve(_ctx, _source, _args, _selection_set):
                events.append(f"start {name}")
                await asyncio.sleep(delay)
                events.append(f"end {name}")
                return name

            return resolve

        schema = Schema(
            query=Object("Query", fields={"noop": Field(String)}),
            mutation=Object("Mutation", fields={
                "first": Field(String, resolver=mutation("first", 0.02)),
                "second": Field(String, resolver=mutation("second", 0)),
            }),
        )
        result = await graphql(schema, "mutation { first second }")
        assert result.data == {"first": "first", "second": "second"}
        assert events == ["start first", "end first", "start second", "end second"]

    @pytest.mark.asyncio
    async def test_mutations_concurrent_when_configured(self):
        events = []

        def mutation(name, delay):
            async def resolve(_ctx, _source, _args, _selection_set):
                events.append(f"start {name}")
                await asyncio.sleep(delay)
                events.append(f"end {name}")
                return name

            return resolve

        schema = Schema(
            query=Object("Query", fields={"noop": Field(String)}),
            mutation=Object("Mutation", fields={
                "first": Field(String, resolver=mutation("first", 0.02)),
                "second": Field(String, resolver=mutation("second", 0)),
            }),
        )
        config = EngineConfig(serial_mutations=False)
        await graphql(schema, "mutation { first second }", config=config)
        assert events[:2] == ["start first", "start second"]

    @pytest.mark.asyncio
    async def test_expensive_resolver_runs_in_thread(self):
        main_thread = threading.get_ident()
        threads = []

        def resolve(_ctx, _source, _args, _selection_set):
            threads.append(threading.get_ident())
            return "done"

        schema = query_schema(report=Field(String, resolver=resolve, expensive=True))
        result = await graphql(schema, "{ report }")
        assert result.data == {"report": "done"}
        assert threads and threads[0] != main_thread

    @pytest.mark.asyncio
    async def test_expensive_resolver_inline_when_disabled(self):
        main_thread = threading.get_ident()
        threads = []

        def resolve(_ctx, _source, _args, _selection_set):
            threads.append(threading.get_ident())
            return "done"

        schema = query_schema(report=Field(String, resolver=resolve, expensive=True))
        await graphql(schema, "{ report }", config=EngineConfig(run_expensive_in_thread=False))
        assert threads == [main_thread]


class TestErrors:
    """Tests for error capture and null propagation."""

    @pytest.mark.asyncio
    async def test_resolver_exception_becomes_field_error(self):
        def fail(_ctx, _source, _args, _selection_set):
            raise RuntimeError("boom")

        schema = query_schema(bad=Field(String, resolver=fail), good=Field(String, resolver=const("ok")))
        result = await graphql(schema, "{ bad good }")
        assert result.data == {"bad": None, "good": "ok"}
        assert result.to_dict()["errors"] == [
            {"message": "boom", "path": ["bad"], "extensions": {"code": "Unknown"}}
        ]
        assert isinstance(result.errors[0].original_error, RuntimeError)

    @pytest.mark.asyncio
    async def test_custom_extensions_preserved(self):
        def deny(_ctx, _source, _args, _selection_set):
            raise ExecutionError("not allowed", extensions={"code": "FORBIDDEN"})

        schema = query_schema(secret=Field(String, resolver=deny))
        result = await graphql(schema, "{ secret }")
        assert result.errors[0].code == "FORBIDDEN"
        assert result.errors[0].path == ["secret"]

    @pytest.mark.asyncio
    async def test_non_null_root_field_nulls_data(self):
        schema = query_schema(req=Field(NonNull(String), resolver=const(None)))
        result = await graphql(schema, "{ req }")
        assert result.data is None
        assert len(result.errors) == 1
        assert result.errors[0].path == ["req"]
        assert "non-nullable" in result.errors[0].message

    @pytest.mark.asyncio
    async def test_null_bubbles_to_nearest_nullable_parent(self):
        user = Object("User", fields={"name": Field(NonNull(String)), "id": Field(ID)})
        schema = query_schema(
            user=Field(user, resolver=const({"id": 1, "name": None})),
            other=Field(String, resolver=const("kept")),
        )
        result = await graphql(schema, "{ user { id name } other }")
        assert result.data == {"user": None, "other": "kept"}
        assert [e.path for e in result.errors] == [["user", "name"]]

    @pytest.mark.asyncio
    async def test_null_bubbles_through_non_null_parents(self):
        user = Object("User", fields={"name": Field(NonNull(String))})
        box = Object("Box", fields={"user": Field(NonNull(user))})
        schema = query_schema(box=Field(box, resolver=const({"user": {"name": None}})))
        result = await graphql(schema, "{ box { user { name } } }")
        assert result.data == {"box": None}
        assert result.errors[0].path == ["box", "user", "name"]

    @pytest.mark.asyncio
    async def test_list_of_non_null_with_null_element(self):
        schema = query_schema(items=Field(List(NonNull(String)), resolver=const(["a", None, "c"])))
        result = await graphql(schema, "{ items }")
        assert result.data == {"items": None}
        assert [e.path for e in result.errors] == [["items", 1]]

    @pytest.mark.asyncio
    async def test_non_null_list_of_non_null_with_null_element(self):
        schema = query_schema(items=Field(NonNull(List(NonNull(String))), resolver=const(["a", None])))
        result = await graphql(schema, "{ items }")
        assert result.data is None
        assert result.errors[0].path == ["items", 1]

    @pytest.mark.asyncio
    async def test_nullable_list_element_error(self):
        schema = query_schema(items=Field(List(String), resolver=const(["a", ValueError("bad item"), "c"])))
        result = await graphql(schema, "{ items }")
        assert result.data == {"items": ["a", None, "c"]}
        assert result.errors[0].path == ["items", 1]
        assert result.errors[0].message == "bad item"

    @pytest.mark.asyncio
    async def test_scalar_serialization_error(self):
        schema = query_schema(count=Field(Int, resolver=const("many")))
        result = await graphql(schema, "{ count }")
        assert result.data == {"count": None}
        assert result.errors[0].path == ["count"]

    @pytest.mark.asyncio
    async def test_list_field_returning_non_list(self):
        schema = query_schema(items=Field(List(String), resolver=const(42)))
        result = await graphql(schema, "{ items }")
        assert result.data == {"items": None}
        assert "Expected a list" in result.errors[0].message

    @pytest.mark.asyncio
    async def test_list_field_returning_string(self):
        schema = query_schema(items=Field(List(String), resolver=const("abc")))
        result = await graphql(schema, "{ items }")
        assert result.data == {"items": None}

    @pytest.mark.asyncio
    async def test_argument_coercion_error_is_field_error(self):
        executor = Executor()
        schema = query_schema(echo=Field(Int, args={"n": Int}, resolver=lambda _c, _s, args, _ss: args["n"]))
        document = parse('{ echo(n: "x") }')
        result = await executor.execute(None, schema.query, None, document)
        assert result.data == {"echo": None}
        assert result.errors[0].code == "BAD_USER_INPUT"

    @pytest.mark.asyncio
    async def test_unknown_operation_name(self):
        executor = Executor()
        schema = query_schema(a=Field(String))
        result = await executor.execute(None, schema.query, None, parse("query A { a }"), "B")
        assert result.data is None
        assert result.errors[0].message == 'unknown operation named "B"'


class TestAbstractTypes:
    """Tests for interface and union resolution."""

    @pytest.fixture
    def characters(self):
        character = Interface("Character", fields={"name": Field(String)})
        human = Object("Human", fields={"name": Field(String), "homePlanet": Field(String)})
        droid = Object("Droid", fields={"name": Field(String), "primaryFunction": Field(String)})
        implement(human, character)
        implement(droid, character)
        return character, human, droid

    @pytest.mark.asyncio
    async def test_concrete_field_arguments_apply_through_interface(self):
        named = Interface("Named", fields={"greet": Field(String, args={"n": Int})})
        person = Object("Person", fields={
            "greet": Field(
                String,
                args={"n": Int},
                defaults={"n": 1},
                parse_arguments=lambda args: ("parsed", args["n"]),
                resolver=lambda _c, _s, args, _ss: repr(args),
            ),
        })
        implement(person, named)
        schema = query_schema(thing=Field(named, resolver=const({"__typename": "Person"})))

        result = await graphql(schema, "{ thing { a: greet(n: 3) b: greet } }")
        assert result.errors is None
        assert result.data == {"thing": {"a": "('parsed', 3)", "b": "('parsed', 1)"}}

    @pytest.mark.asyncio
    async def test_typename_key(self, characters):
        character, _, _ = characters
        values = [
            {"__typename": "Human", "name": "Luke", "homePlanet": "Tatooine"},
            {"__typename": "Droid", "name": "R2", "primaryFunction": "Astromech"},
        ]
        schema = query_schema(all=Field(List(character), resolver=const(values)))
        source = """{ all { __typename name
                       ... on Human { homePlanet }
                       ... on Droid { primaryFunction } } }"""
        result = await graphql(schema, source)
        assert result.data == {"all": [
            {"__typename": "Human", "name": "Luke", "homePlanet": "Tatooine"},
            {"__typename": "Droid", "name": "R2", "primaryFunction": "Astromech"},
        ]}

    @pytest.mark.asyncio
    async def test_resolve_type(self, characters):
        character, human, _ = characters
        character.resolve_type = lambda value: human if "homePlanet" in value else "Droid"
        schema = query_schema(hero=Field(character, resolver=const({"name": "R2", "primaryFunction": "Astro"})))
        result = await graphql(schema, "{ hero { ... on Droid { primaryFunction } } }")
        assert result.data == {"hero": {"primaryFunction": "Astro"}}

    @pytest.mark.asyncio
    async def test_is_type_of(self, characters):
        character, human, _ = characters
        human.is_type_of = lambda value: value.get("kind") == "human"
        schema = query_schema(hero=Field(character, resolver=const({"kind": "human", "name": "Luke"})))
        result = await graphql(schema, "{ hero { __typename name } }")
        assert result.data == {"hero": {"__typename": "Human", "name": "Luke"}}

    @pytest.mark.asyncio
    async def test_class_name(self, characters):
        character, _, _ = characters

        class Droid:
            name = "C-3PO"
            primaryFunction = "Protocol"

        schema = query_schema(hero=Field(character, resolver=const(Droid())))
        result = await graphql(schema, "{ hero { name ... on Droid { primaryFunction } } }")
        assert result.data == {"hero": {"name": "C-3PO", "primaryFunction": "Protocol"}}

    @pytest.mark.asyncio
    async def test_unresolvable_type(self, characters):
        character, _, _ = characters
        schema = query_schema(hero=Field(character, resolver=const({"name": "?"})))
        result = await graphql(schema, "{ hero { name } }")
        assert result.data == {"hero": None}
        assert "must resolve to one of its possible types" in result.errors[0].message

    @pytest.mark.asyncio
    async def test_interface_fragment_on_object(self, characters):
        character, human, _ = characters
        schema = query_schema(luke=Field(human, resolver=const({"name": "Luke"})))
        result = await graphql(schema, "{ luke { ...Named } } fragment Named on Character { name }")
        assert result.data == {"luke": {"name": "Luke"}}

    @pytest.mark.asyncio
    async def test_union(self, characters):
        _, human, droid = characters
        result_type = Union("SearchResult", types={"Human": human, "Droid": droid})
        values = [{"__typename": "Droid", "primaryFunction": "Astromech"}, {"__typename": "Human", "name": "Han"}]
        schema = query_schema(search=Field(List(result_type), resolver=const(values)))
        source = "{ search { ... on Human { name } ... on Droid { primaryFunction } } }"
        result = await graphql(schema, source)
        assert result.data == {"search": [{"primaryFunction": "Astromech"}, {"name": "Han"}]}


class TestBatchResolvers:
    """Tests for batch resolution of list elements."""

    @pytest.fixture
    def calls(self):
        return []

    def user_schema(self, batch):
        user = Object("User", fields={
            "id": Field(ID),
            "friendCount": Field(Int, batch_resolver=batch),
        })
        users = [{"id": 1}, {"id": 2}, {"id": 3}]
        return query_schema(
            users=Field(List(user), resolver=const(users)),
            me=Field(user, resolver=const({"id": 9})),
        )

    @pytest.mark.asyncio
    async def test_one_call_for_the_whole_list(self, calls):
        def batch(_ctx, sources, _args, _selection_set):
            calls.append(list(sources))
            return [s["id"] * 10 for s in sources]

        result = await graphql(self.user_schema(batch), "{ users { id friendCount } }")
        assert result.data == {"users": [
            {"id": "1", "friendCount": 10},
            {"id": "2", "friendCount": 20},
            {"id": "3", "friendCount": 30},
        ]}
        assert len(calls) == 1
        assert [s["id"] for s in calls[0]] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_nested_lists_batch_per_inner_list(self, calls):
        def score(_ctx, sources, _args, _selection_set):
            calls.append([s["id"] for s in sources])
            return [s["id"] * 10 for s in sources]

        user = Object("User", fields={"id": Field(ID), "score": Field(Int, batch_resolver=score)})
        groups = [[{"id": 1}, {"id": 2}], [{"id": 3}]]
        schema = query_schema(groups=Field(List(List(user)), resolver=const(groups)))

        result = await graphql(schema, "{ groups { id score } }")
        assert result.errors is None
        assert result.data == {"groups": [
            [{"id": "1", "score": 10}, {"id": "2", "score": 20}],
            [{"id": "3", "score": 30}],
        ]}
        assert sorted(calls) == [[1, 2], [3]]

    @pytest.mark.asyncio
    async def test_async_batch_resolver(self, calls):
        async def batch(_ctx, sources, _args, _selection_set):
            calls.append(len(sources))
            await asyncio.sleep(0)
            return [s["id"] for s in sources]

        result = await graphql(self.user_schema(batch), "{ users { friendCount } }")
        assert [u["friendCount"] for u in result.data["users"]] == [1, 2, 3]
        assert calls == [3]

    @pytest.mark.asyncio
    async def test_single_object_uses_batch_of_one(self, calls):
        def batch(_ctx, sources, _args, _selection_set):
            calls.append(len(sources))
            return [7 for _ in sources]

        result = await graphql(self.user_schema(batch), "{ me { friendCount } }")
        assert result.data == {"me": {"friendCount": 7}}
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_per_element_error(self):
        def batch(_ctx, sources, _args, _selection_set):
            return [10, ValueError("no friends"), 30]

        result = await graphql(self.user_schema(batch), "{ users { friendCount } }")
        assert result.data == {"users": [{"friendCount": 10}, {"friendCount": None}, {"friendCount": 30}]}
        assert [e.path for e in result.errors] == [["users", 1, "friendCount"]]
        assert result.errors[0].message == "no friends"

    @pytest.mark.asyncio
    async def test_batch_failure_applies_to_every_element(self):
        def batch(_ctx, sources, _args, _selection_set):
            raise RuntimeError("backend down")

        result = await graphql(self.user_schema(batch), "{ users { id friendCount } }")
        assert [u["friendCount"] for u in result.data["users"]] == [None, None, None]
        assert [u["id"] for u in result.data["users"]] == ["1", "2", "3"]
        assert sorted(tuple(e.path) for e in result.errors) == [
            ("users", 0, "friendCount"),
            ("users", 1, "friendCount"),
            ("users", 2, "friendCount"),
        ]
        assert all(e.message == "backend down" for e in result.errors)

    @pytest.mark.asyncio
    async def test_batch_length_mismatch(self):
        def batch(_ctx, sources, _args, _selection_set):
            return [1]

        result = await graphql(self.user_schema(batch), "{ users { friendCount } }")
        assert len(result.errors) == 3
        assert "returned 1 values for 3 sources" in result.errors[0].message

    @pytest.mark.asyncio
    async def test_batch_with_aliases_and_arguments(self, calls):
        def batch(_ctx, sources, args, _selection_set):
            calls.append(args)
            return [s["id"] + args["bonus"] for s in sources]

        user = Object("User", fields={"score": Field(Int, args={"bonus": Int}, batch_resolver=batch)})
        schema = query_schema(users=Field(List(user), resolver=const([{"id": 1}, {"id": 2}])))
        result = await graphql(schema, "{ users { low: score(bonus: 0) high: score(bonus: 100) } }")
        assert result.data == {"users": [{"low": 1, "high": 101}, {"low": 2, "high": 102}]}
        assert sorted(c["bonus"] for c in calls) == [0, 100]

    @pytest.mark.asyncio
    async def test_null_elements_are_skipped(self, calls):
        def batch(_ctx, sources, _args, _selection_set):
            calls.append(len(sources))
            return [s["id"] for s in sources]

        user = Object("User", fields={"friendCount": Field(Int, batch_resolver=batch)})
        schema = query_schema(users=Field(List(user), resolver=const([{"id": 1}, None, {"id": 3}])))
        result = await graphql(schema, "{ users { friendCount } }")
        assert result.data == {"users": [{"friendCount": 1}, None, {"friendCount": 3}]}
        assert calls == [2]

    @pytest.mark.asyncio
    async def test_grouped_by_concrete_type(self):
        calls = {"Human": [], "Droid": []}

        def batch_for(type_name):
            def batch(_ctx, sources, _args, _selection_set):
                calls[type_name].append([s["name"] for s in sources])
                return [f"{type_name}:{s['name']}" for s in sources]

            return batch

        character = Interface("Character", fields={"name": Field(String), "label": Field(String)})
        human = Object("Human", fields={"name": Field(String), "label": Field(String, batch_resolver=batch_for("Human"))})
        droid = Object("Droid", fields={"name": Field(String), "label": Field(String, batch_resolver=batch_for("Droid"))})
        implement(human, character)
        implement(droid, character)
        values = [
            {"__typename": "Human", "name": "Luke"},
            {"__typename": "Droid", "name": "R2"},
            {"__typename": "Human", "name": "Han"},
        ]
        schema = query_schema(all=Field(List(character), resolver=const(values)))
        result = await graphql(schema, "{ all { label } }")
        assert result.data == {"all": [{"label": "Human:Luke"}, {"label": "Droid:R2"}, {"label": "Human:Han"}]}
        assert calls == {"Human": [["Luke", "Han"]], "Droid": [["R2"]]}

    @pytest.mark.asyncio
    async def test_non_null_batch_field_error_nulls_element(self):
        def batch(_ctx, sources, _args, _selection_set):
            return [1, None]

        user = Object("User", fields={"count": Field(NonNull(Int), batch_resolver=batch)})
        schema = query_schema(users=Field(List(user), resolver=const([{}, {}])))
        result = await graphql(schema, "{ users { count } }")
        assert result.data == {"users": [{"count": 1}, None]}
        assert result.errors[0].path == ["users", 1, "count"]


class TestLazyFields:
    """Tests for lazily executed fields."""

    @pytest.mark.asyncio
    async def test_producer_called_once(self):
        calls = []

        def produce():
            calls.append(1)
            return "computed"

        schema = query_schema(value=Field(String, resolver=const(produce), lazy_execution=True))
        result = await graphql(schema, "{ value }")
        assert result.data == {"value": "computed"}
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_lazy_resolver(self):
        seen = []

        async def run(ctx, producer):
            seen.append(ctx.value)
            return producer.upper()

        schema = query_schema(
            value=Field(String, resolver=const("thunk"), lazy_execution=True, lazy_resolver=run)
        )
        result = await graphql(schema, "{ value }", context=ExecutionContext(value="ctx"))
        assert result.data == {"value": "THUNK"}
        assert seen == ["ctx"]

    @pytest.mark.asyncio
    async def test_lazy_batch_values(self):
        def batch(_ctx, sources, _args, _selection_set):
            return [(lambda n=s["n"]: n * 2) for s in sources]

        item = Object("Item", fields={"double": Field(Int, batch_resolver=batch, lazy_execution=True)})
        schema = query_schema(items=Field(List(item), resolver=const([{"n": 1}, {"n": 2}])))
        result = await graphql(schema, "{ items { double } }")
        assert result.data == {"items": [{"double": 2}, {"double": 4}]}

    @pytest.mark.asyncio
    async def test_producer_error(self):
        def produce():
            raise LookupError("missing")

        schema = query_schema(value=Field(String, resolver=const(produce), lazy_execution=True))
        result = await graphql(schema, "{ value }")
        assert result.data == {"value": None}
        assert result.errors[0].message == "missing"


class TestCancellation:
    """Tests for context cancellation."""

    @pytest.mark.asyncio
    async def test_cancelled_before_execution(self):
        calls = []

        def resolve(_ctx, _source, _args, _selection_set):
            calls.append(1)
            return "x"

        schema = query_schema(a=Field(String, resolver=resolve))
        ctx = ExecutionContext()
        ctx.cancel()
        result = await graphql(schema, "{ a }", context=ctx)
        assert calls == []
        assert result.data == {"a": None}
        assert result.errors[0].code == "Canceled"

    @pytest.mark.asyncio
    async def test_no_new_resolvers_after_cancel(self):
        calls = []

        def resolve_user(ctx, _source, _args, _selection_set):
            ctx.cancel()
            return {"name": "Ann"}

        def resolve_name(_ctx, source, _args, _selection_set):
            calls.append(source)
            return source["name"]

        user = Object("User", fields={"name": Field(String, resolver=resolve_name)})
        schema = query_schema(user=Field(user, resolver=resolve_user))
        ctx = ExecutionContext()
        result = await graphql(schema, "{ user { name } }", context=ctx)
        assert ctx.cancelled
        assert calls == []
        assert result.data == {"user": {"name": None}}
        assert result.errors[0].path == ["user", "name"]
        assert result.errors[0].extensions == {"code": "Canceled"}


class TestSubscriptions:
    """Tests for Executor.subscribe."""

    @pytest.fixture
    def schema(self):
        async def count(_ctx, _source, args, _selection_set):
            for i in range(args["upto"]):
                yield {"n": i}

        tick = Object("Tick", fields={"n": Field(Int), "label": Field(String, resolver=lambda _c, s, _a, _ss: f"#{s['n']}")})
        subscription = Object("Subscription", fields={
            "ticks": Field(tick, args={"upto": NonNull(Int)}, resolver=count),
            "numbers": Field(NonNull(Int), resolver=const([1, None, 3])),
            "broken": Field(Int, resolver=const(5)),
        })
        return Schema(query=Object("Query", fields={"noop": Field(String)}), subscription=subscription)

    async def collect(self, schema, source, ctx=None):
        executor = Executor()
        return [
            result
            async for result in executor.subscribe(ctx, schema.subscription, None, parse(source))
        ]

    @pytest.mark.asyncio
    async def test_async_generator_events(self, schema):
        results = await self.collect(schema, "subscription { ticks(upto: 3) { n label } }")
        assert [r.data for r in results] == [
            {"ticks": {"n": 0, "label": "#0"}},
            {"ticks": {"n": 1, "label": "#1"}},
            {"ticks": {"n": 2, "label": "#2"}},
        ]
        assert all(r.errors == [] for r in results)

    @pytest.mark.asyncio
    async def test_event_errors_are_per_event(self, schema):
        results = await self.collect(schema, "subscription { numbers }")
        assert [r.data for r in results] == [{"numbers": 1}, None, {"numbers": 3}]
        assert results[1].errors[0].path == ["numbers"]
        assert results[0].errors == [] and results[2].errors == []

    @pytest.mark.asyncio
    async def test_non_iterable_source(self, schema):
        results = await self.collect(schema, "subscription { broken }")
        assert len(results) == 1
        assert results[0].data is None
        assert "must return an iterable" in results[0].errors[0].message

    @pytest.mark.asyncio
    async def test_stops_when_cancelled(self, schema):
        ctx = ExecutionContext()
        executor = Executor()
        received = []
        document = parse("subscription { ticks(upto: 5) { n } }")
        async for result in executor.subscribe(ctx, schema.subscription, None, document):
            received.append(result.data)
            ctx.cancel()
        assert received == [{"ticks": {"n": 0}}]
