import datetime
from typing import Iterator, List, Optional

import pytest

from jamap import (
    Attribute,
    DateAttribute,
    Decoder,
    Encoder,
    Meta,
    ResourceSchema,
    SchemaRegistry,
    ToMany,
    ToOne,
)
from jamap.config import get_config
from jamap.validators import equals_field, length, trim_to_none


class Person:
    def __init__(self, id: Optional[str] = None, name: Optional[str] = None, email: Optional[str] = None) -> None:
        self.id = id
        self.name = name
        self.email = email
        self.password = None
        self.password_confirmation = None
        self.articles: List["Article"] = []


class Organization:
    def __init__(self, id: Optional[str] = None, name: Optional[str] = None) -> None:
        self.id = id
        self.name = name


class Comment:
    def __init__(self, id: Optional[str] = None, body: Optional[str] = None, author: Optional[Person] = None) -> None:
        self.id = id
        self.body = body
        self.author = author
        self.article: Optional["Article"] = None


class Article:
    def __init__(
        self,
        id: Optional[str] = None,
        title: Optional[str] = None,
        body: Optional[str] = None,
        author: Optional[Person] = None,
        comments: Optional[List[Comment]] = None,
    ) -> None:
        self.id = id
        self.title = title
        self.body = body
        self.published: Optional[datetime.datetime] = None
        self.views = 0
        self.author = author
        self.publisher = None
        self.comments = list(comments or [])


class PersonSchema(ResourceSchema):
    resource_type = "people"
    mapping_class = Person
    attributes = (
        Attribute("name", filter=trim_to_none),
        Attribute("email"),
        Attribute("password", readable=False),
        Attribute("password_confirmation", readable=False, validators=[equals_field("password")]),
    )
    relationships = (ToMany("articles", expects=["articles"]),)
    meta = (Meta("article_count", getter=lambda person: len(person.articles)),)


class OrganizationSchema(ResourceSchema):
    resource_type = "organizations"
    mapping_class = Organization
    attributes = (Attribute("name"),)


class CommentSchema(ResourceSchema):
    resource_type = "comments"
    mapping_class = Comment
    attributes = (Attribute("body", required=True),)
    relationships = (
        ToOne("author", expects=[PersonSchema]),
        ToOne("article", expects=["articles"]),
    )


class ArticleSchema(ResourceSchema):
    resource_type = "articles"
    mapping_class = Article
    attributes = (
        Attribute("title", required=True, validators=[length(max=40)]),
        Attribute("body"),
        DateAttribute("published"),
        Attribute("views", writable=False),
    )
    relationships = (
        ToOne("author", expects=[PersonSchema]),
        ToMany("comments", expects=["comments"]),
        ToOne("publisher", expects=["people", "organizations"]),
    )


@pytest.fixture(autouse=True)
def _clear_config_cache() -> Iterator[None]:
    get_config.cache_clear()
    yield
    get_config.cache_clear()


@pytest.fixture
def registry() -> SchemaRegistry:
    return SchemaRegistry([PersonSchema, OrganizationSchema, CommentSchema, ArticleSchema])


@pytest.fixture
def decoder(registry: SchemaRegistry) -> Decoder:
    return Decoder(registry)


@pytest.fixture
def encoder(registry: SchemaRegistry) -> Encoder:
    return Encoder(registry)


@pytest.fixture
def article() -> Article:
    """
    article 1 by person 9, with two comments: one by person 9 and one by person 10
    """
    author = Person("9", "Dan", "dan@example.com")
    other = Person("10", "Ann", "ann@example.com")
    comments = [Comment("5", "First!", other), Comment("12", "I like it", author)]
    result = Article("1", "JSON:API paints my bikeshed!", "The shortest article. Ever.", author, comments)
    result.published = datetime.datetime(2020, 5, 17, 13, 30)
    author.articles.append(result)
    for comment in comments:
        comment.article = result
    return result
