import datetime
import json
from types import SimpleNamespace
from typing import Any

import pytest

from jamap import (
    JAMAP,
    Absent,
    Attribute,
    Decoder,
    Error,
    Identifier,
    IdentityCache,
    InvalidFormatError,
    InvalidValidatorError,
    ResourceSchema,
    SchemaRegistry,
    ToMany,
    ToOne,
    ValidationResult,
)
from jamap.jsonapi_primitives import ResourceIdentifier
from tests.conftest import Article, ArticleSchema, Comment, CommentSchema, Organization, OrganizationSchema, Person, PersonSchema


def _body(data: Any) -> str:
    return json.dumps({"data": data})


def test_decode_article_with_author(decoder: Decoder) -> None:
    raw = '{"data":{"type":"articles","attributes":{"title":"Hi"},"relationships":{"author":{"data":{"type":"people","id":"9"}}}}}'
    result = decoder.decode(raw, [ArticleSchema])

    assert not result.has_errors()
    assert result.errors == []
    assert isinstance(result.data, Article)
    assert result.data.title == "Hi"
    assert isinstance(result.data.author, Person)
    assert result.data.author.id == "9"
    assert result.modified == ["title", "author"]
    assert result.get_error_document() is None


def test_decode_missing_required_title(decoder: Decoder) -> None:
    raw = '{"data":{"type":"articles","relationships":{"author":{"data":{"type":"people","id":"9"}}}}}'
    result = decoder.decode(raw, [ArticleSchema])

    assert result.data is None
    assert result.has_validation_errors()
    assert result.errors == [Error("Field is required.", pointer="title")]
    error_document = result.get_error_document()
    assert error_document.status_code == "422"
    assert error_document.to_dict() == {"errors": [{"source": {"pointer": "title"}, "detail": "Field is required."}]}


def test_identity_within_one_decode(decoder: Decoder) -> None:
    data = [
        {"type": "articles", "attributes": {"title": "Hi"}, "relationships": {"author": {"data": {"type": "people", "id": "42"}}}},
        {"type": "people", "id": "42", "attributes": {"name": "Dan"}},
    ]
    result = decoder.decode(_body(data), [ArticleSchema, PersonSchema])

    assert not result.has_errors()
    article, person = result.data
    assert article.author is person
    assert article.author.name == "Dan"
    assert len(result.contexts) == 2


def test_identity_between_relationships(decoder: Decoder) -> None:
    data = {
        "type": "articles",
        "attributes": {"title": "Hi"},
        "relationships": {
            "author": {"data": {"type": "people", "id": "7"}},
            "publisher": {"data": {"type": "people", "id": "7"}},
        },
    }
    result = decoder.decode(_body(data), [ArticleSchema])
    assert result.data.author is result.data.publisher


def test_decode_is_idempotent(decoder: Decoder) -> None:
    raw = _body({"type": "articles", "id": "1", "attributes": {"title": "Hi", "body": "text"}})
    first = decoder.decode(raw, [ArticleSchema]).data
    second = decoder.decode(raw, [ArticleSchema]).data

    assert first is not second
    assert (first.id, first.title, first.body) == (second.id, second.title, second.body) == ("1", "Hi", "text")


def test_patch_leaves_missing_fields_untouched(decoder: Decoder, registry: SchemaRegistry) -> None:
    person = Person("9", "Dan", "dan@example.com")
    cache = IdentityCache()
    cache.add(registry.resolve(PersonSchema), person)

    raw = _body({"type": "people", "id": "9", "attributes": {"name": "Daniel"}})
    result = decoder.decode_patch(raw, [PersonSchema], identity_cache=cache)

    assert not result.has_errors()
    assert result.data is person
    assert person.name == "Daniel"
    assert person.email == "dan@example.com"
    assert result.modified == ["name"]


def test_failed_patch_leaves_cached_object_untouched(decoder: Decoder, registry: SchemaRegistry) -> None:
    article = Article("1", "Hi", "old body")
    cache = IdentityCache()
    cache.add(registry.resolve(ArticleSchema), article)

    raw = _body(
        {
            "type": "articles",
            "id": "1",
            "attributes": {"body": "new body", "title": None},
            "relationships": {"author": {"data": {"type": "people", "id": "9"}}},
        }
    )
    result = decoder.decode_patch(raw, [ArticleSchema], identity_cache=cache)

    assert result.data is None
    assert result.errors == [Error("Field is required.", pointer="title")]
    assert (article.title, article.body, article.author) == ("Hi", "old body", None)


def test_failed_collection_writes_no_resource(decoder: Decoder, registry: SchemaRegistry) -> None:
    first = Organization("1", "ACME")
    cache = IdentityCache()
    cache.add(registry.resolve(OrganizationSchema), first)

    data = [{"type": "organizations", "id": "1", "attributes": {"name": "Globex"}}, {"type": "articles", "attributes": {}}]
    result = decoder.decode(_body(data), [OrganizationSchema, ArticleSchema], identity_cache=cache)

    assert result.data == []
    assert first.name == "ACME"


def test_full_decode_nulls_missing_fields(decoder: Decoder) -> None:
    raw = _body({"type": "people", "id": "9", "attributes": {"name": "Daniel"}})
    result = decoder.decode(raw, [PersonSchema])

    assert not result.has_errors()
    assert result.data.name == "Daniel"
    assert result.data.email is None


def test_ignore_missing_fields_still_requires_sent_nulls(decoder: Decoder) -> None:
    raw = _body({"type": "articles", "id": "1", "attributes": {"title": None}})
    result = decoder.decode(raw, [ArticleSchema], ignore_missing_fields=True)

    assert result.data is None
    assert result.errors == [Error("Field is required.", pointer="title")]


def test_required_field_yields_exactly_one_error(decoder: Decoder) -> None:
    result = decoder.decode(_body({"type": "comments", "attributes": {}}), [CommentSchema])
    assert result.errors == [Error("Field is required.", pointer="body")]


def test_required_relationship(registry: SchemaRegistry) -> None:
    class _ReviewSchema(ResourceSchema):
        resource_type = "reviews"
        mapping_class = Article
        relationships = (ToOne("author", expects=[PersonSchema], required=True), ToMany("comments", expects=[CommentSchema], required=True))

    result = Decoder(registry).decode(_body({"type": "reviews", "relationships": {"author": {"data": None}, "comments": {"data": []}}}), [_ReviewSchema])
    assert [error.pointer for error in result.errors] == ["author", "comments"]
    assert result.data is None


@pytest.mark.parametrize("data, expected", [([], []), (None, None)])
def test_cardinality_of_empty_data(decoder: Decoder, data: Any, expected: Any) -> None:
    result = decoder.decode(_body(data), [ArticleSchema])
    assert result.data == expected
    assert not result.has_errors()


def test_decode_single_and_collection(decoder: Decoder) -> None:
    single = decoder.decode(_body({"type": "organizations", "id": "1"}), ["organizations"])
    assert isinstance(single.data, Organization)

    collection = decoder.decode(_body([{"type": "organizations", "id": "1"}, {"type": "organizations", "id": "2"}]), ["organizations"])
    assert [org.id for org in collection.data] == ["1", "2"]


def test_decode_indexed_object_as_collection(decoder: Decoder) -> None:
    data = {"1": {"type": "organizations", "id": "b"}, "0": {"type": "organizations", "id": "a"}}
    result = decoder.decode(_body(data), ["organizations"])
    assert [org.id for org in result.data] == ["a", "b"]


def test_collection_with_errors_is_empty(decoder: Decoder) -> None:
    data = [{"type": "comments", "attributes": {"body": "ok"}}, {"type": "comments", "attributes": {}}]
    result = decoder.decode(_body(data), [CommentSchema])
    assert result.data == []
    assert len(result.errors) == 1


def test_polymorphic_relationship(decoder: Decoder) -> None:
    data = {"type": "articles", "attributes": {"title": "Hi"}, "relationships": {"publisher": {"data": {"type": "organizations", "id": "3"}}}}
    result = decoder.decode(_body(data), [ArticleSchema])
    assert isinstance(result.data.publisher, Organization)
    assert result.data.publisher.id == "3"


def test_unknown_relationship_type_is_dropped(decoder: Decoder) -> None:
    data = {
        "type": "articles",
        "attributes": {"title": "Hi"},
        "relationships": {
            "publisher": {"data": {"type": "robots", "id": "3"}},
            "comments": {"data": [{"type": "comments", "id": "1"}, {"type": "robots", "id": "2"}]},
        },
    }
    result = decoder.decode(_body(data), [ArticleSchema])

    assert not result.has_errors()
    assert result.data.publisher is None
    assert [comment.id for comment in result.data.comments] == ["1"]


def test_unknown_relationship_type_strict(decoder: Decoder, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(JAMAP, "STRICT_RELATIONSHIP_TYPES", True)
    data = {"type": "articles", "attributes": {"title": "Hi"}, "relationships": {"publisher": {"data": {"type": "robots", "id": "3"}}}}
    result = decoder.decode(_body(data), [ArticleSchema])

    assert result.data is None
    assert result.errors == [Error("Invalid type 'robots' for this relationship.", pointer="publisher")]


def test_to_many_relationship_is_replaced_without_duplicates(decoder: Decoder) -> None:
    linkage = [{"type": "comments", "id": "5"}, {"type": "comments", "id": "5"}, {"type": "comments", "id": "6"}]
    data = {"type": "articles", "attributes": {"title": "Hi"}, "relationships": {"comments": {"data": linkage}}}
    result = decoder.decode(_body(data), [ArticleSchema])

    assert [comment.id for comment in result.data.comments] == ["5", "6"]
    assert all(isinstance(comment, Comment) for comment in result.data.comments)


def test_to_one_relationship_set_to_null(decoder: Decoder, registry: SchemaRegistry) -> None:
    article = Article("1", "Hi", author=Person("9"))
    cache = IdentityCache()
    cache.add(registry.resolve(ArticleSchema), article)

    result = decoder.decode_patch(_body({"type": "articles", "id": "1", "relationships": {"author": {"data": None}}}), [ArticleSchema], identity_cache=cache)
    assert result.data is article
    assert article.author is None
    assert article.title == "Hi"


def test_interdependent_validation(decoder: Decoder) -> None:
    attributes = {"name": "Dan", "password": "secret", "password_confirmation": "secrte"}
    result = decoder.decode(_body({"type": "people", "attributes": attributes}), [PersonSchema])
    assert result.errors == [Error("Value must match 'password'.", pointer="password_confirmation")]

    attributes["password_confirmation"] = "secret"
    result = decoder.decode(_body({"type": "people", "attributes": attributes}), [PersonSchema])
    assert not result.has_errors()
    assert result.data.password == "secret"


def test_validator_messages(decoder: Decoder) -> None:
    result = decoder.decode(_body({"type": "articles", "attributes": {"title": "x" * 41}}), [ArticleSchema])
    assert result.errors == [Error("Value must be at most 40 characters long.", pointer="title")]


def test_errors_are_accumulated(decoder: Decoder) -> None:
    attributes = {"title": "x" * 41, "published": "yesterday"}
    result = decoder.decode(_body({"type": "articles", "attributes": attributes}), [ArticleSchema])
    assert [error.pointer for error in result.errors] == ["title", "published"]
    assert result.errors[1].detail == "Invalid date format."


def test_date_attribute(decoder: Decoder) -> None:
    result = decoder.decode(_body({"type": "articles", "attributes": {"title": "Hi", "published": "2020-05-17T13:30:00Z"}}), [ArticleSchema])
    assert result.data.published == datetime.datetime(2020, 5, 17, 13, 30, tzinfo=datetime.timezone.utc)


def test_filter_runs_before_validation(decoder: Decoder) -> None:
    result = decoder.decode(_body({"type": "people", "attributes": {"name": "  Dan  "}}), [PersonSchema])
    assert result.data.name == "Dan"
    assert result.context.get_attribute("name") == "Dan"


def test_read_only_attribute_is_ignored(decoder: Decoder) -> None:
    result = decoder.decode(_body({"type": "articles", "attributes": {"title": "Hi", "views": 1000}}), [ArticleSchema])
    assert result.data.views == 0
    assert "views" not in result.modified


def test_context_tracks_absent_fields(decoder: Decoder) -> None:
    result = decoder.decode(_body({"type": "articles", "id": "1", "attributes": {"title": "Hi", "body": None}}), [ArticleSchema])
    context = result.context

    assert context.id == "1"
    assert context.attributes["published"] is Absent
    assert context.attributes["body"] is None
    assert context.is_modified("body")
    assert not context.is_modified("published")
    assert context.relationships["author"] is Absent
    assert context.get_relationship("author") is None


def test_relationship_validators() -> None:
    seen = []

    def to_one(resource_id, resource_type, context):
        seen.append((resource_id, resource_type))
        return True

    def to_many(identifiers, context):
        seen.append(identifiers)
        return len(identifiers) <= 1

    class _ArticleSchema(ResourceSchema):
        resource_type = "articles"
        mapping_class = Article
        relationships = (
            ToOne("author", expects=[PersonSchema], validators=[to_one]),
            ToMany("comments", expects=[CommentSchema], validators=[to_many]),
        )

    linkage = [{"type": "comments", "id": "1"}, {"type": "comments", "id": "2"}]
    data = {"type": "articles", "relationships": {"author": {"data": {"type": "people", "id": "9"}}, "comments": {"data": linkage}}}
    result = Decoder(SchemaRegistry()).decode(_body(data), [_ArticleSchema])

    assert seen[0] == ("9", "people")
    assert seen[1] == [ResourceIdentifier(type="comments", id="1"), ResourceIdentifier(type="comments", id="2")]
    assert result.errors == [Error("Invalid value.", pointer="comments")]


def test_validate_if_empty() -> None:
    class _CommentSchema(ResourceSchema):
        resource_type = "comments"
        mapping_class = Comment
        attributes = (Attribute("body", validate_if_empty=True, validators=[lambda value, context: ValidationResult.invalid("Say something.")]),)

    result = Decoder(SchemaRegistry()).decode(_body({"type": "comments"}), [_CommentSchema])
    assert result.errors == [Error("Say something.", pointer="body")]


def test_invalid_validator_result() -> None:
    class _CommentSchema(ResourceSchema):
        resource_type = "comments"
        mapping_class = Comment
        attributes = (Attribute("body", validators=[lambda value, context: "ok"]),)

    with pytest.raises(InvalidValidatorError):
        Decoder(SchemaRegistry()).decode(_body({"type": "comments", "attributes": {"body": "text"}}), [_CommentSchema])


@pytest.mark.parametrize(
    "raw",
    [
        "{not json",
        "[]",
        '{"meta": {}}',
        _body({"id": "1"}),
        _body({"type": "robots", "id": "1"}),
        _body({"type": "articles", "relationships": {"author": {"data": {"type": "people"}}}}),
        _body({"type": "articles", "relationships": {"author": {"data": {"type": "people", "id": 9}}}}),
        _body({"type": "articles", "relationships": {"author": {"type": "people", "id": "9"}}}),
        _body({"type": "articles", "relationships": {"comments": {"data": {"type": "comments", "id": "9"}}}}),
        json.dumps({"data": None, "links": {}}),
        # objects whose keys aren't exactly "0" .. "n-1" aren't collections
        _body({"00": {"type": "articles", "attributes": {"title": "Hi"}}}),
        _body({"²": {"type": "articles", "attributes": {"title": "Hi"}}}),
        _body({"1": {"type": "articles", "attributes": {"title": "Hi"}}}),
    ],
)
def test_invalid_documents(decoder: Decoder, raw: str) -> None:
    with pytest.raises(InvalidFormatError):
        decoder.decode(raw, [ArticleSchema])


@pytest.mark.parametrize("validate_documents", [True, False])
def test_non_canonical_indexes(decoder: Decoder, monkeypatch: pytest.MonkeyPatch, validate_documents: bool) -> None:
    monkeypatch.setattr(JAMAP, "VALIDATE_DOCUMENTS", validate_documents)
    for data in ({"00": {"type": "organizations", "id": "1"}}, {"0": {"type": "organizations", "id": "1"}, "02": {"type": "organizations", "id": "2"}}):
        with pytest.raises(InvalidFormatError):
            decoder.decode(_body(data), ["organizations"])


class _TagSchema(ResourceSchema):
    resource_type = "tags"
    mapping_class = SimpleNamespace
    identifier = Identifier("pk", converter=int)
    attributes = (Attribute("label"),)


class _PostSchema(ResourceSchema):
    resource_type = "posts"
    mapping_class = SimpleNamespace
    relationships = (ToOne("tag", expects=[_TagSchema]),)


def test_converted_ids() -> None:
    decoder = Decoder(SchemaRegistry())

    result = decoder.decode(_body({"type": "tags", "id": "7", "attributes": {"label": "news"}}), [_TagSchema])
    assert (result.data.pk, result.data.label) == (7, "news")

    with pytest.raises(InvalidFormatError) as exc_info:
        decoder.decode(_body({"type": "tags", "id": "abc", "attributes": {"label": "news"}}), [_TagSchema])
    assert str(exc_info.value) == "Invalid id 'abc' for resource type 'tags'."

    with pytest.raises(InvalidFormatError):
        decoder.decode_to_one_relationship(_body({"type": "tags", "id": "abc"}), [_TagSchema])
    with pytest.raises(InvalidFormatError):
        decoder.decode_to_many_relationship(_body([{"type": "tags", "id": "1"}, {"type": "tags", "id": "x"}]), [_TagSchema])


def test_invalid_relationship_target_id() -> None:
    raw = _body({"type": "posts", "id": "1", "relationships": {"tag": {"data": {"type": "tags", "id": "abc"}}}})
    result = Decoder(SchemaRegistry()).decode(raw, [_PostSchema])

    assert result.data is None
    assert result.errors == [Error("Invalid id 'abc' for this relationship.", pointer="tag")]

    raw = _body({"type": "posts", "id": "1", "relationships": {"tag": {"data": {"type": "tags", "id": "3"}}}})
    assert Decoder(SchemaRegistry()).decode(raw, [_PostSchema]).data.tag.pk == 3


def test_non_string_attribute_value(decoder: Decoder) -> None:
    result = decoder.decode(_body({"type": "articles", "attributes": {"title": 5}}), [ArticleSchema])

    assert result.data is None
    assert result.errors == [Error("Value must be a string.", pointer="title")]


def test_unregistered_relationship_schema_is_skipped() -> None:
    # CommentSchema.article expects the "articles" name, which isn't registered here
    data = {
        "type": "comments",
        "attributes": {"body": "ok"},
        "relationships": {"article": {"data": {"type": "articles", "id": "1"}}, "author": {"data": {"type": "people", "id": "9"}}},
    }
    result = Decoder(SchemaRegistry([CommentSchema])).decode(_body(data), [CommentSchema])

    assert not result.has_errors()
    assert result.data.article is None
    assert result.data.author.id == "9"


@pytest.mark.parametrize(
    "data, message",
    [
        ({"id": "1"}, "Missing resource 'type'."),
        ({"type": "robots"}, "Invalid 'type' given for this resource: 'robots'"),
        ({"type": "articles", "relationships": {"author": {"data": [{"type": "people", "id": "9"}]}}}, "Invalid to-one relationship format."),
        ({"type": "articles", "relationships": {"comments": {"data": None}}}, "Invalid to-many relationship format."),
        ({"type": "articles", "relationships": {"author": None}}, "Relationship 'author' must be an object with a 'data' member."),
    ],
)
def test_inline_format_checks(decoder: Decoder, monkeypatch: pytest.MonkeyPatch, data: Any, message: str) -> None:
    monkeypatch.setattr(JAMAP, "VALIDATE_DOCUMENTS", False)
    with pytest.raises(InvalidFormatError) as exc_info:
        decoder.decode(_body(data), [ArticleSchema])
    assert str(exc_info.value) == message
    assert exc_info.value.message == "Invalid Format: " + message
    assert exc_info.value.status_code == 400


def test_decode_post(decoder: Decoder) -> None:
    raw = _body({"type": "organizations", "attributes": {"name": "ACME"}})
    result = decoder.decode_post(raw, ["organizations"])
    assert result.data.id is None
    assert result.data.name == "ACME"


def test_decode_post_ephemeral_id(decoder: Decoder) -> None:
    raw = _body({"type": "organizations", "id": "tmp-1", "attributes": {"name": "ACME"}})
    with pytest.raises(InvalidFormatError) as exc_info:
        decoder.decode_post(raw, ["organizations"])
    assert str(exc_info.value) == "Ephemeral IDs are not allowed."

    result = decoder.decode_post(raw, ["organizations"], allow_ephemeral_id=True)
    assert result.data.id == "tmp-1"
    assert result.context.id == "tmp-1"


def test_decode_patch_requires_id(decoder: Decoder) -> None:
    with pytest.raises(InvalidFormatError):
        decoder.decode_patch(_body({"type": "organizations", "attributes": {"name": "ACME"}}), ["organizations"])


def test_decode_to_one_relationship(decoder: Decoder) -> None:
    person = decoder.decode_to_one_relationship(_body({"type": "people", "id": "9"}), [PersonSchema])
    assert isinstance(person, Person)
    assert person.id == "9"
    assert decoder.decode_to_one_relationship(_body(None), [PersonSchema]) is None

    with pytest.raises(InvalidFormatError):
        decoder.decode_to_one_relationship(_body({"type": "robots", "id": "9"}), [PersonSchema])
    with pytest.raises(InvalidFormatError):
        decoder.decode_to_one_relationship(_body([{"type": "people", "id": "9"}]), [PersonSchema])


def test_decode_to_many_relationship(decoder: Decoder, registry: SchemaRegistry) -> None:
    known = Comment("5", "cached")
    cache = IdentityCache()
    cache.add(registry.resolve(CommentSchema), known)

    linkage = [{"type": "comments", "id": "5"}, {"type": "comments", "id": "6"}]
    comments = decoder.decode_to_many_relationship(_body(linkage), [CommentSchema], identity_cache=cache)
    assert comments[0] is known
    assert comments[1].id == "6"
    assert decoder.decode_to_many_relationship(_body([]), [CommentSchema]) == []

    with pytest.raises(InvalidFormatError):
        decoder.decode_to_many_relationship(_body(None), [CommentSchema])


def test_decoder_keeps_no_call_state(decoder: Decoder) -> None:
    first = decoder.decode(_body({"type": "comments", "attributes": {}}), [CommentSchema])
    second = decoder.decode(_body({"type": "comments", "attributes": {"body": "ok"}}), [CommentSchema])

    assert first.has_errors()
    assert not second.has_errors()
    assert first.identity_cache is not second.identity_cache
    assert sorted(vars(decoder)) == ["document_validator", "registry"]
