"""
Document processor package.
"""
from pcbs.document_processor.interfaces import (
    ItemType,
    SectionType,
    ParsedEmail,
    Location,
    OrderItem,
    ContractTable,
    ExtractedLinks,
    DetectedSection,
    AddendumData
)
from pcbs.document_processor.exceptions import (
    PCBSError,
    MalformedInputError,
    UnreachableError,
    ExtractionError
)

__all__ = [
    'ItemType',
    'SectionType',
    'ParsedEmail',
    'Location',
    'OrderItem',
    'ContractTable',
    'ExtractedLinks',
    'DetectedSection',
    'AddendumData',
    'PCBSError',
    'MalformedInputError',
    'UnreachableError',
    'ExtractionError'
]
