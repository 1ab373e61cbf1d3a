from datetime import date, datetime
from enum import Enum

from bson import ObjectId


class DateTimeSerializerVisitor:
    """Visitor to turn Mongo documents into JSON-safe structures.

    datetimes become ISO strings, ObjectIds become hex strings and enum
    members collapse to their values.
    """
    def visit(self, obj):
        if isinstance(obj, dict):
            return {key: self.visit(value) for key, value in obj.items()}
        elif isinstance(obj, (list, tuple)):
            return [self.visit(item) for item in obj]
        elif isinstance(obj, (datetime, date)):
            return obj.isoformat()
        elif isinstance(obj, ObjectId):
            return str(obj)
        elif isinstance(obj, Enum):
            return obj.value
        return obj
