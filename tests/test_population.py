"""Tests for the populated-vs-reference helpers."""

from bson import ObjectId

from app.population import (
    Reference, is_populated_store, is_populated_product, is_populated_user, reference_id
)
from factories import make_store, make_product, make_user


class TestTypeGuards:

    def test_populated_documents_are_recognised(self):
        assert is_populated_store(make_store())
        assert is_populated_product(make_product())
        assert is_populated_user(make_user())

    def test_bare_ids_are_not_populated(self):
        oid = ObjectId()
        for guard in (is_populated_store, is_populated_product, is_populated_user):
            assert guard(oid) is False
            assert guard(str(oid)) is False
            assert guard(None) is False

    def test_reference_tag_is_not_populated(self):
        assert is_populated_store(Reference(id=str(ObjectId()), collection="stores")) is False

    def test_partial_documents_are_not_populated(self):
        assert is_populated_store({"_id": ObjectId(), "name": "No email"}) is False
        assert is_populated_product({"_id": ObjectId(), "name": "No price"}) is False
        assert is_populated_user({"firstName": "Ada", "lastName": "Obi"}) is False

    def test_guards_never_raise_on_odd_input(self):
        for value in (42, 3.5, [], ["name", "price"], object()):
            assert is_populated_product(value) is False


class TestReferenceId:

    def test_all_shapes_resolve_to_the_same_string(self):
        oid = ObjectId()
        assert reference_id(oid) == str(oid)
        assert reference_id(str(oid)) == str(oid)
        assert reference_id(Reference(id=str(oid))) == str(oid)
        assert reference_id(make_store(store_id=oid)) == str(oid)

    def test_missing_is_none(self):
        assert reference_id(None) is None
        assert reference_id({"name": "no id"}) is None
