"""Tests for the remote method proxies installed on attached models."""
import asyncio
import unittest
from unittest import mock

from hypothesis import given, settings as hypothesis_settings, strategies as st

from remotezero.core import Model
from remotezero.core.config import ModelEntry
from remotezero.core.classes import MethodDescriptor, ModelDescriptor
from remotezero.core.exceptions import ConfigError, NotFound, RemoteInvocationError
from remotezero.core.proxy import create_proxy_method, is_callback
from tests.factories import attach, make_attached


class TestStaticProxies(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.Author, self.Post, self.invoker = make_attached()

    async def test_static_call_invokes_path_identifier(self):
        """A static proxy invokes the remote method with the positional args."""
        self.invoker.register("Author.count", lambda where=None: 3)

        result = await self.Author.objects.count({"name": "Ann"})

        self.assertEqual(result, 3)
        self.assertEqual(len(self.invoker.calls), 1)
        call = self.invoker.calls[0]
        self.assertEqual(call.string_name, "Author.count")
        self.assertIsNone(call.instance_id)
        self.assertEqual(call.args, [{"name": "Ann"}])

    async def test_results_are_materialized(self):
        """Raw payloads come back as model instances in payload order."""
        self.invoker.register("Author.find", lambda *args: [{"id": 2}, {"id": 1}])

        authors = await self.Author.objects.find()

        self.assertEqual([a.pk for a in authors], [2, 1])
        self.assertTrue(all(isinstance(a, self.Author) for a in authors))

    async def test_aliases_share_the_proxy_function(self):
        """Canonical name and aliases resolve to the very same function object."""
        objects = self.Author.objects
        self.assertIs(objects.find, objects.all)
        self.assertIs(objects.find, objects.find_all)
        self.assertIs(objects.destroyById, objects.deleteById)
        self.assertIs(objects.destroyById, objects.removeById)
        self.assertIsNot(objects.find, objects.findById)

    async def test_proxy_carries_its_descriptor(self):
        proxy = self.Author.objects.findById
        self.assertEqual(proxy.__name__, "findById")
        self.assertEqual(proxy._remotezero_descriptor.string_name, "Author.findById")

    async def test_each_call_is_a_separate_invocation(self):
        """Identical concurrent calls are never coalesced."""
        self.invoker.register("Author.findById", lambda pk: {"id": pk})

        first, second = await asyncio.gather(
            self.Author.objects.findById(1), self.Author.objects.findById(1)
        )

        self.assertEqual(first.pk, 1)
        self.assertEqual(second.pk, 1)
        self.assertEqual(len(self.invoker.calls_to("Author.findById")), 2)

    async def test_completion_order_follows_the_invoker(self):
        """A later call may complete first; each settles with its own result."""
        release_first = asyncio.Event()
        completed = []

        async def find_by_id(pk):
            if pk == 1:
                await release_first.wait()
            completed.append(pk)
            return {"id": pk}

        self.invoker.register("Author.findById", find_by_id)

        first = self.Author.objects.findById(1)
        second = self.Author.objects.findById(2)
        self.assertEqual((await second).pk, 2)
        self.assertFalse(first.done())
        release_first.set()
        self.assertEqual((await first).pk, 1)
        self.assertEqual(completed, [2, 1])


class TestNotFoundTranslation(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.Author, self.Post, self.invoker = make_attached()

        def missing(*args):
            raise NotFound("Unknown \"Author\" id \"9\".")

        for name in ("Author.findById", "Author.findOne", "Author.destroyById", "Author.count"):
            self.invoker.register(name, missing)

    async def test_find_by_id_not_found_resolves_to_none(self):
        self.assertIsNone(await self.Author.objects.findById(9))

    async def test_find_one_not_found_resolves_to_none(self):
        self.assertIsNone(await self.Author.objects.findOne({"where": {"id": 9}}))

    async def test_alias_of_finder_also_resolves_to_none(self):
        self.assertIsNone(await self.Author.objects.find_by_id(9))

    async def test_finder_callback_receives_none_none(self):
        outcomes = []
        await self.Author.objects.findById(9, lambda err, result: outcomes.append((err, result)))
        self.assertEqual(outcomes, [(None, None)])

    async def test_other_methods_propagate_not_found(self):
        with self.assertRaises(NotFound) as ctx:
            await self.Author.objects.destroyById(9)
        self.assertEqual(ctx.exception.code, "MODEL_NOT_FOUND")

    async def test_non_finder_callback_receives_the_error(self):
        outcomes = []
        future = self.Author.objects.count(lambda err, result: outcomes.append((err, result)))
        with self.assertRaises(NotFound):
            await future
        self.assertEqual(len(outcomes), 1)
        self.assertIsInstance(outcomes[0][0], NotFound)
        self.assertIsNone(outcomes[0][1])

    async def test_finder_propagates_other_errors(self):
        def denied(*args):
            raise RemoteInvocationError("nope", code="ACCESS_DENIED", status_code=403)

        self.invoker.register("Author.findById", denied)
        with self.assertRaises(RemoteInvocationError) as ctx:
            await self.Author.objects.findById(1)
        self.assertEqual(ctx.exception.code, "ACCESS_DENIED")


class TestCallbackConvention(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.Author, self.Post, self.invoker = make_attached()
        self.invoker.register("Author.create", lambda data: {"id": 5, **data})

    async def test_callback_called_once_and_future_returned(self):
        outcomes = []
        future = self.Author.objects.create(
            {"name": "Ann"}, lambda err, result: outcomes.append((err, result))
        )

        self.assertIsInstance(future, asyncio.Future)
        created = await future
        await asyncio.sleep(0)

        self.assertEqual(len(outcomes), 1)
        err, result = outcomes[0]
        self.assertIsNone(err)
        self.assertIs(result, created)
        self.assertEqual(created.name, "Ann")
        # The callback is not forwarded to the remote end.
        self.assertEqual(self.invoker.calls[0].args, [{"name": "Ann"}])

    async def test_class_argument_is_not_a_callback(self):
        self.invoker.register("Author.count", lambda *args: len(args))
        self.assertEqual(await self.Author.objects.count(self.Post), 1)

    async def test_synchronous_invoker_failure_settles_the_future(self):
        outcomes = []
        with mock.patch.object(
            self.invoker, "invoke_static", side_effect=RuntimeError("transport down")
        ):
            future = self.Author.objects.count(lambda err, result: outcomes.append((err, result)))
        with self.assertRaises(RuntimeError):
            await future
        self.assertEqual(len(outcomes), 1)
        self.assertIsInstance(outcomes[0][0], RuntimeError)

    def test_is_callback(self):
        self.assertTrue(is_callback(lambda err, result: None))
        self.assertFalse(is_callback(self.Author))
        self.assertFalse(is_callback({"where": {}}))


class TestInstanceProxies(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.Author, self.Post, self.invoker = make_attached()
        self.invoker.register(
            "Author.prototype.updateAttributes", lambda pk, data: {"id": pk, **data}
        )

    async def test_instance_call_passes_instance_id(self):
        author = self.Author({"id": 1, "name": "Ann"})

        updated = await author.updateAttributes({"name": "Bea"})

        call = self.invoker.calls[0]
        self.assertEqual(call.string_name, "Author.prototype.updateAttributes")
        self.assertEqual(call.instance_id, 1)
        self.assertEqual(call.args, [{"name": "Bea"}])
        self.assertEqual(updated.name, "Bea")

    async def test_instance_id_is_read_at_call_time(self):
        author = self.Author({"id": 1})
        update = author.patchAttributes
        author.id = 7

        await update({"name": "Cy"})

        self.assertEqual(self.invoker.calls[0].instance_id, 7)

    async def test_instance_without_id_still_invokes(self):
        author = self.Author({"name": "Ann"})

        updated = await author.updateAttributes({"name": "Bea"})

        self.assertIsNone(self.invoker.calls[0].instance_id)
        self.assertEqual(updated.name, "Bea")

    async def test_instance_aliases_share_the_proxy_function(self):
        author = self.Author({"id": 1})
        self.assertIs(author.updateAttributes.__func__, author.patchAttributes.__func__)


class TestUnderscorePrimaryKey(unittest.IsolatedAsyncioTestCase):
    """Models whose identity field starts with an underscore, such as ``_id``."""

    def setUp(self):
        class Doc(Model):
            _descriptor = ModelDescriptor(
                name="Doc",
                pk_field="_id",
                methods=(MethodDescriptor(name="touch", is_static=False, returns="Doc"),),
            )

        self.Doc = Doc
        _, self.invoker = attach(Doc)
        self.invoker.register("Doc.prototype.touch", lambda pk: {"_id": pk, "touched": True})

    async def test_instance_call_sends_underscore_id(self):
        doc = self.Doc({"_id": "abc"})

        touched = await doc.touch()

        self.assertEqual(self.invoker.calls[0].instance_id, "abc")
        self.assertEqual(touched.pk, "abc")
        self.assertTrue(touched.touched)

    async def test_underscore_id_is_a_field(self):
        doc = self.Doc({"_id": "abc"})
        doc._id = "xyz"

        await doc.touch()

        self.assertEqual(doc._id, "xyz")
        self.assertEqual(doc.to_dict(), {"_id": "xyz"})
        self.assertEqual(self.invoker.calls[0].instance_id, "xyz")

    def test_pk_name_comes_from_declared_descriptor(self):
        class Draft(Model):
            _descriptor = ModelDescriptor(name="Draft", pk_field="_id")

        draft = Draft({"_id": 3})
        self.assertEqual(draft.pk, 3)
        self.assertEqual(draft._id, 3)


class TestExcludedMethods(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.Author, self.Post, self.invoker = make_attached()

    async def test_change_keeps_local_implementation(self):
        self.assertEqual(self.Author.objects.Change(), "local-change")
        self.assertEqual(self.invoker.calls, [])

    async def test_checkpoint_is_not_proxied(self):
        author = self.Author({"id": 1})
        with self.assertRaises(AttributeError):
            author.Checkpoint
        self.assertNotIn("Change", self.Author._entry.static_methods)
        self.assertNotIn("Checkpoint", self.Author._entry.instance_methods)
        self.assertEqual(self.invoker.calls, [])


class TestAliasEquivalence(unittest.TestCase):
    """Calling through an alias produces the same remote invocation as the canonical name."""

    @hypothesis_settings(max_examples=25, deadline=None)
    @given(
        args=st.lists(
            st.one_of(st.integers(), st.text(max_size=8), st.dictionaries(st.text(max_size=4), st.integers(), max_size=3)),
            max_size=4,
        ),
        alias=st.sampled_from(["all", "find_all"]),
    )
    def test_alias_invocations_match(self, args, alias):
        Author, Post, invoker = make_attached()
        invoker.register("Author.find", lambda *a: [])

        async def run():
            await getattr(Author.objects, "find")(*args)
            await getattr(Author.objects, alias)(*args)

        asyncio.run(run())

        canonical, aliased = invoker.calls
        self.assertEqual(canonical.string_name, aliased.string_name)
        self.assertEqual(canonical.args, aliased.args)


class TestProxyConfiguration(unittest.TestCase):
    def test_static_method_without_static_surface_fails_at_definition(self):
        class Bare:
            pass

        entry = ModelEntry(Bare, ModelDescriptor(name="Bare", methods=(MethodDescriptor(name="find"),)))
        with self.assertRaises(ConfigError):
            create_proxy_method(entry, mock.Mock(), entry.descriptor.methods[0])

    def test_calling_outside_an_event_loop_raises(self):
        Author, Post, invoker = make_attached()
        with self.assertRaises(RuntimeError):
            Author.objects.count()
        self.assertEqual(invoker.calls, [])
