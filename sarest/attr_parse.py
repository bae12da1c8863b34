import datetime
import sarest
import sqlalchemy
from .errors import MalformedInputError

TRUE_STRINGS = ("true", "1", "yes", "on")


def parse_attr(column, attr_val):
    """
    Parse the supplied `attr_val` so it can be saved in the SQLAlchemy `column`

    :param column: SQLAlchemy column
    :param attr_val: request payload value
    :return: processed value
    """
    if attr_val is None:
        return attr_val

    try:
        python_type = column.type.python_type
    except NotImplementedError as exc:
        # custom column type: the developer should know how to handle it
        sarest.log.debug(exc)
        return attr_val

    # skip type coercion on JSON columns, since they could be anything
    if isinstance(column.type, sqlalchemy.types.JSON):
        return attr_val

    if isinstance(attr_val, python_type):
        return attr_val

    try:
        if python_type is datetime.datetime:
            attr_val = datetime.datetime.fromisoformat(str(attr_val))
        elif python_type is datetime.date:
            attr_val = datetime.date.fromisoformat(str(attr_val))
        elif python_type is datetime.time:
            attr_val = datetime.time.fromisoformat(str(attr_val))
        elif python_type is bool and isinstance(attr_val, str):
            attr_val = attr_val.lower() in TRUE_STRINGS
        elif python_type is bytes and isinstance(attr_val, str):
            attr_val = attr_val.encode()
        else:
            attr_val = python_type(attr_val)
    except (TypeError, ValueError) as exc:
        raise MalformedInputError(f'Invalid value "{attr_val}" for {column.name} ({exc})')

    return attr_val
