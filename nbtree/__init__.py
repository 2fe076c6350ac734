"""
nbtree is a library for reading Named Binary Tag (NBT) data for Python 3.
It decodes NBT documents into a navigable tree of Single and Array nodes, and decodes the chunks of Region (.mca / .mcr) files.
"""

#NBT Tag Types, Enums, Exceptions
from nbtree.shared import (
    TAG_END, TAG_BYTE, TAG_SHORT, TAG_INT, TAG_LONG, TAG_FLOAT, TAG_DOUBLE, TAG_BYTE_ARRAY, TAG_STRING, TAG_LIST, TAG_COMPOUND, TAG_INT_ARRAY,
    TAG_COUNT, TAG_NAMES,
    Qualifier, ArrayType, ParserStatus,
    NBTError, NBTFormatError, RangeIllegalError, MalformedStreamError, UnknownTagTypeError, UnsupportedCompressionError,
    UnexpectedEndOfInputError, NullIteratorError, TruncatedContainerError, DecompressionError, BufferTooSmallError,
    WrongTagError, DuplicateNameError, OutOfBoundsError, ConversionError, TypeMismatchError, IterationInProgressError
)

#Tree nodes and payload classes
from nbtree.tag import Tag, Single, Array, Byte, Short, Int, Long, Float, Double, ByteArray, String, IntArray

#NBT Parser
from nbtree.parse import Parser, read

#Region files
from nbtree.compression import decompress, COMPRESSION_NONE, COMPRESSION_GZIP, COMPRESSION_ZLIB
from nbtree.region import Region, Chunk


#Export everything we imported above
__all__ = [
    "TAG_END", "TAG_BYTE", "TAG_SHORT", "TAG_INT", "TAG_LONG", "TAG_FLOAT", "TAG_DOUBLE", "TAG_BYTE_ARRAY", "TAG_STRING", "TAG_LIST", "TAG_COMPOUND", "TAG_INT_ARRAY",
    "TAG_COUNT", "TAG_NAMES",
    "Qualifier", "ArrayType", "ParserStatus",
    "NBTError", "NBTFormatError", "RangeIllegalError", "MalformedStreamError", "UnknownTagTypeError", "UnsupportedCompressionError",
    "UnexpectedEndOfInputError", "NullIteratorError", "TruncatedContainerError", "DecompressionError", "BufferTooSmallError",
    "WrongTagError", "DuplicateNameError", "OutOfBoundsError", "ConversionError", "TypeMismatchError", "IterationInProgressError",
    "Tag", "Single", "Array", "Byte", "Short", "Int", "Long", "Float", "Double", "ByteArray", "String", "IntArray",
    "Parser", "read",
    "decompress", "COMPRESSION_NONE", "COMPRESSION_GZIP", "COMPRESSION_ZLIB",
    "Region", "Chunk"
]
