from typing import Any, Dict, List, Optional, TypedDict, Union


class JSONAPIResourceIdentifier(TypedDict):
    type: str
    id: Optional[str]


class JSONAPIRelationship(TypedDict):
    data: Union[JSONAPIResourceIdentifier, List[JSONAPIResourceIdentifier], None]


class JSONAPIResourceObject(JSONAPIResourceIdentifier, total=False):
    attributes: Dict[str, Any]
    relationships: Dict[str, JSONAPIRelationship]
    meta: Dict[str, Any]


JSONAPIData = Union[JSONAPIResourceObject, List[JSONAPIResourceObject], None]


class JSONAPIResponseDocument(TypedDict, total=False):
    data: JSONAPIData
    included: List[JSONAPIResourceObject]


class JSONAPILinkageDocument(TypedDict):
    data: Union[JSONAPIResourceIdentifier, List[JSONAPIResourceIdentifier], None]
