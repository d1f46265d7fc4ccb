# -*- coding: utf-8 -*-
#
# pydantic models of the JSON:API document envelopes
# Request models forbid unexpected members, cfr. jamap.document_validator
#
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class PermissiveModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class JsonApiVersion(PermissiveModel):
    version: str = "1.0"


class ResourceIdentifier(StrictModel):
    """
    Resource linkage: the {"type", "id"} pair used to reference a resource,
    instances are hashable and compare structurally
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: str
    id: str


class RelationshipObject(StrictModel):
    # "data" is required but may be null
    data: Union[List[ResourceIdentifier], ResourceIdentifier, None]
    links: Optional[Dict[str, Any]] = None
    meta: Optional[Dict[str, Any]] = None


class RequestResource(StrictModel):
    type: str
    id: Optional[str] = None
    attributes: Optional[Dict[str, Any]] = None
    relationships: Optional[Dict[str, RelationshipObject]] = None
    meta: Optional[Dict[str, Any]] = None


class PatchResource(RequestResource):
    id: str


class ResourceDocument(StrictModel):
    data: Union[List[RequestResource], RequestResource, None]
    jsonapi: Optional[JsonApiVersion] = None
    meta: Optional[Dict[str, Any]] = None


class PostDocument(StrictModel):
    data: RequestResource
    jsonapi: Optional[JsonApiVersion] = None
    meta: Optional[Dict[str, Any]] = None


class PatchDocument(StrictModel):
    data: PatchResource
    jsonapi: Optional[JsonApiVersion] = None
    meta: Optional[Dict[str, Any]] = None


class ToOneRelationshipDocument(StrictModel):
    data: Optional[ResourceIdentifier]
    jsonapi: Optional[JsonApiVersion] = None
    meta: Optional[Dict[str, Any]] = None


class ToManyRelationshipDocument(StrictModel):
    data: List[ResourceIdentifier]
    jsonapi: Optional[JsonApiVersion] = None
    meta: Optional[Dict[str, Any]] = None


class JsonApiErrorSource(PermissiveModel):
    pointer: Optional[str] = None
    parameter: Optional[str] = None


class JsonApiErrorObject(PermissiveModel):
    id: Optional[str] = None
    status: Optional[str] = None
    code: Optional[str] = None
    title: Optional[str] = None
    detail: Optional[str] = None
    source: Optional[JsonApiErrorSource] = None
    links: Optional[Dict[str, Any]] = None
    meta: Optional[Dict[str, Any]] = None


class JsonApiErrorDocument(PermissiveModel):
    jsonapi: Optional[JsonApiVersion] = None
    errors: List[JsonApiErrorObject] = Field(default_factory=list)
