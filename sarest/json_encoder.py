# sarest to json encoding

import datetime
import decimal
from uuid import UUID
from flask.json.provider import DefaultJSONProvider
import sarest


class SARESTJSONProvider(DefaultJSONProvider):
    """
    Flask JSON encoding for the column values returned by the shaped queries
    """

    sort_keys = False

    # pylint: disable=too-many-return-statements,method-hidden
    def default(self, obj):
        """
        override the default json encoding
        :param obj: object to be encoded
        :return: encoded/serialized object
        """
        if isinstance(obj, datetime.timedelta):
            return str(obj)
        if isinstance(obj, (datetime.datetime, datetime.date, datetime.time)):
            return obj.isoformat()
        if isinstance(obj, (set, frozenset, tuple)):
            return list(obj)
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, decimal.Decimal):
            return float(obj)
        if isinstance(obj, bytes):
            if obj == b"":
                return ""
            sarest.log.debug("SARESTJSONProvider: serializing bytes obj")
            return obj.hex()
        return DefaultJSONProvider.default(obj)
