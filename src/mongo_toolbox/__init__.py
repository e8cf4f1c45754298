"""Bulk mutation helpers for MongoDB collections."""

from mongo_toolbox.operations import (
    add_field_to_all_documents,
    convert_field_type,
    convert_number_to_string,
    delete_documents,
    delete_field_from_all_documents,
    rename_collection,
    replace_values_where,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "add_field_to_all_documents",
    "convert_field_type",
    "convert_number_to_string",
    "delete_documents",
    "delete_field_from_all_documents",
    "rename_collection",
    "replace_values_where",
]
