import datetime
import json
import logging

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def configure_logging(verbose=False):
    """Configures root logging the same way for every command."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT, force=True)
    # botocore is very chatty at DEBUG.
    logging.getLogger("botocore").setLevel(logging.INFO if verbose else logging.WARNING)


def json_serial(obj):
    """JSON serializer for objects not serializable by default, like datetime."""
    if isinstance(obj, (datetime.datetime, datetime.date)):
        return obj.isoformat()
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    raise TypeError(f"Type {type(obj)} not serializable")


def to_json(data):
    """Renders data (or anything with a to_dict method) as indented JSON."""
    return json.dumps(data, indent=4, default=json_serial)
