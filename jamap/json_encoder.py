# jamap to json encoding

import datetime
import decimal
import enum
import json
from flask.json.provider import DefaultJSONProvider
from uuid import UUID
import jamap
from .config import is_debug
from .error_document import ErrorDocument


class _JAJSONEncoder:
    """
    JSON encoding of the attribute values that the json module can't handle
    """

    # pylint: disable=too-many-return-statements,logging-fstring-interpolation
    # pylint: disable=arguments-differ,method-hidden
    def default(self, obj, **kwargs):
        """
        override the default json encoding
        :param obj: object to be encoded
        :return: encoded/serialized object
        """
        if obj is None:
            return None
        if isinstance(obj, datetime.timedelta):
            return str(obj)
        if isinstance(obj, (datetime.datetime, datetime.date, datetime.time)):
            return obj.isoformat()
        if isinstance(obj, (set, frozenset)):
            return list(obj)
        if isinstance(obj, enum.Enum):
            return obj.value
        if isinstance(obj, ErrorDocument):
            return obj.to_dict()
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, decimal.Decimal):
            return float(obj)
        if isinstance(obj, bytes):
            if obj == b"":
                return ""
            jamap.log.debug("JAJSONEncoder: serializing bytes obj")
            return obj.hex()

        # getting here means an attribute getter returned something we can't represent in json
        if not is_debug():
            jamap.log.warning(f'JSON Encoding Error: Unknown object type "{type(obj)}" for {obj}')
            return {"error": "JAJSONEncoder invalid object"}

        return self.encode_public_attrs(obj)

    @staticmethod
    def encode_public_attrs(obj):
        """
        debug fallback: the attributes without a _ prefix, non-numeric values as strings
        :param obj: object without a json representation
        :return: dict or str
        """
        try:
            attrs = vars(obj)
        except TypeError:
            # no __dict__, for ex. objects with __slots__
            return str(obj)
        return {k: v if v is None or isinstance(v, (int, float)) else str(v) for k, v in attrs.items() if not k.startswith("_")}


class JAJSONProvider(_JAJSONEncoder, DefaultJSONProvider):
    """
    Flask JSON encoding, set `app.json = JAJSONProvider(app)` to serialize
    error documents and attribute values returned from flask views
    """

    mimetype = "application/vnd.api+json"


class JAJSONEncoder(_JAJSONEncoder, json.JSONEncoder):
    """
    Common JSON encoding, used by the Encoder
    """

    pass
