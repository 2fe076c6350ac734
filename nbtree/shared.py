import sys
from enum import IntEnum
from struct import calcsize, Struct
from array import array

#Tag Types
#A TAG_End is a nameless tag that terminates TAG_Compound and is the default listType for an empty TAG_List.
#It has no payload, and its named tag header is simply b"\0" because it is nameless.
TAG_END        = 0
TAG_BYTE       = 1  #A TAG_Byte payload stores a 1-byte signed integer.
TAG_SHORT      = 2  #A TAG_Short payload stores a 2-byte big-endian signed integer.
TAG_INT        = 3  #A TAG_Int payload stores a 4-byte big-endian signed integer.
TAG_LONG       = 4  #A TAG_Long payload stores an 8-byte big-endian signed integer.
TAG_FLOAT      = 5  #A TAG_Float payload stores a big-endian binary32 float.
TAG_DOUBLE     = 6  #A TAG_Double payload stores a big-endian binary64 float.
TAG_BYTE_ARRAY = 7  #Length (4-byte big-endian signed integer), followed by exactly that many signed bytes.
TAG_STRING     = 8  #Length in bytes (2-byte big-endian unsigned integer), followed by that many UTF-8 encoded bytes.
TAG_LIST       = 9  #Element tagType (1 byte), count (4-byte big-endian signed integer), then that many bare payloads.
TAG_COMPOUND   = 10 #Named tag headers + payloads, terminated by a TAG_End.
TAG_INT_ARRAY  = 11 #Length (4-byte big-endian signed integer) followed by that many 4-byte big-endian signed integers.

#Internal names of tags (indexed by tag type) as defined by the NBT specification
TAG_NAMES = (
    "TAG_End",
    "TAG_Byte",
    "TAG_Short",
    "TAG_Int",
    "TAG_Long",
    "TAG_Float",
    "TAG_Double",
    "TAG_Byte_Array",
    "TAG_String",
    "TAG_List",
    "TAG_Compound",
    "TAG_Int_Array"
)

#Total number of tag types understood by this library.
TAG_COUNT = len( TAG_NAMES )

#We /need/ a 4-byte integer type for TAG_Int_Array payloads: select one here, or fail if one is not available.
if calcsize( "i" ) == 4:
    SIGNED_INT_TYPE = "i"
elif calcsize( "l" ) == 4:
    SIGNED_INT_TYPE = "l"
else:
    raise OSError( "No 4-byte datatype available." )

#Structs
_B  = Struct( ">b" )    #Signed byte (1 byte)
_UB = Struct( ">B" )    #Unsigned byte (1 byte)
_S  = Struct( ">h" )    #Signed big-endian short (2 bytes)
_US = Struct( ">H" )    #Unsigned big-endian short (2 bytes)
_I  = Struct( ">i" )    #Signed big-endian int (4 bytes)
_UI = Struct( ">I" )    #Unsigned big-endian int (4 bytes)
_L  = Struct( ">q" )    #Signed big-endian long (8 bytes)
_F  = Struct( ">f" )    #Big-endian float (4 bytes)
_D  = Struct( ">d" )    #Big-endian double (8 bytes)
_TL = Struct( ">Bi" )   #Tag list header (element type, count)
_CH = Struct( ">IB" )   #Region chunk record header (length, compression)

class Qualifier( IntEnum ):
    """Distinguishes leaf nodes (Single) from interior nodes (Array)."""
    SINGLE = 0
    ARRAY  = 1

class ArrayType( IntEnum ):
    """The two kinds of Array: a homogeneous, unnamed TAG_List or a heterogeneous, named TAG_Compound."""
    LIST     = 0
    COMPOUND = 1

class ParserStatus( IntEnum ):
    """Outcome of the last Parser.build() call."""
    GOOD             = 0
    RANGE_ILLEGAL    = 1
    MALFORMED_STREAM = 2
    NULL_ITERATOR    = 3
    UNEXPECTED_END   = 4

class NBTError( Exception ):
    """Base class for every exception raised by nbtree."""
    pass

class NBTFormatError( NBTError ):
    """This exception is raised when decoding data that violates the NBT or Region specification."""
    status = ParserStatus.MALFORMED_STREAM

class RangeIllegalError( NBTFormatError, ValueError ):
    """
    RangeIllegalError( start, end, length )

    This exception is raised when the byte range given to the decoder is malformed,
    i.e. start is after end, or the range does not lie inside the buffer.
    """
    status = ParserStatus.RANGE_ILLEGAL
    def __str__( self ):
        return "Illegal decode range [{:d},{:d}) for a buffer of {:d} bytes.".format( *self.args )

class MalformedStreamError( NBTFormatError ):
    """This exception is raised when a value read from the stream is outside of the values the format allows."""
    pass

class UnknownTagTypeError( MalformedStreamError ):
    """
    UnknownTagTypeError( tagType )

    This exception is raised when a tag with an invalid or unrecognized type is read.
    See "Tag Types" above for valid tag types.
    """
    def __str__( self ):
        return "Unknown or unsupported tag type: {:d}".format( self.args[0] )

class UnsupportedCompressionError( MalformedStreamError ):
    """
    UnsupportedCompressionError( compression )

    This exception is raised when a Region chunk uses a recognized compression type that nbtree does not decode (GZip).
    """
    def __str__( self ):
        return "Unsupported chunk compression type: {:d}.".format( self.args[0] )

class UnexpectedEndOfInputError( NBTFormatError, EOFError ):
    """
    UnexpectedEndOfInputError( position, needed, end )

    This exception is raised when a field extends past the end of the range being decoded.
    """
    status = ParserStatus.UNEXPECTED_END
    def __str__( self ):
        return "Needed {1:d} byte{3} at offset {0:d}, but input ends at offset {2:d}.".format( *self.args, "s" if self.args[1] != 1 else "" )

class NullIteratorError( NBTFormatError, TypeError ):
    """This exception is raised when the decoder is given no buffer or no cursor to decode."""
    status = ParserStatus.NULL_ITERATOR

class TruncatedContainerError( NBTFormatError ):
    """
    TruncatedContainerError( length, required )

    This exception is raised when a Region file is too small to hold its location and timestamp tables.
    """
    def __str__( self ):
        return "Region data is {:d} bytes long; at least {:d} bytes are required.".format( *self.args )

class DecompressionError( NBTFormatError ):
    """This exception is raised when chunk data cannot be decompressed."""
    pass

class BufferTooSmallError( DecompressionError ):
    """
    BufferTooSmallError( capacity )

    This exception is raised when decompressed data does not fit in the given output capacity.
    Unlike other decompression errors it is retryable with a larger capacity.
    """
    def __str__( self ):
        return "Decompressed data exceeds the output capacity of {:d} bytes.".format( self.args[0] )

class WrongTagError( NBTFormatError ):
    """
    WrongTagError( expected, given )

    This exception is raised when the wrong type of tag is added to a TAG_List.
    According to the NBT specification, TAG_Lists are only permitted to contain tags of a single type.
    """
    def __str__( self ):
        return "Expected {}, but received {} instead.".format( describeTag( self.args[0] ), describeTag( self.args[1] ) )

class DuplicateNameError( NBTFormatError ):
    """
    DuplicateNameError( name )

    This exception is raised by a strict Parser when multiple tags with the same name are read from the same TAG_Compound.
    """
    def __str__( self ):
        return "There is already a tag with the name \"{}\" in this TAG_Compound.".format( self.args[0] )

class OutOfBoundsError( NBTFormatError, ValueError ):
    """
    OutOfBoundsError( value, min, max )

    This exception is raised when constructing a payload whose value is outside of the valid range for that type.
    """
    def __str__( self ):
        return "Value {:d} is outside of expected range [{:d},{:d}].".format( *self.args )

class ConversionError( NBTError, TypeError ):
    """
    ConversionError( value )

    This exception is raised when a plain Python value can't be mapped to exactly one payload type.
    int could be a Byte, Short, Int or Long, and float could be a Float or Double, so these must be wrapped explicitly:
        Single( "count", 5 )        #Raises ConversionError
        Single( "count", Int( 5 ) ) #...try this instead
    """
    def __str__( self ):
        return "Unable to convert value of type \"{}\" to a payload.".format( self.args[0].__class__.__name__ )

class TypeMismatchError( NBTError, TypeError ):
    """
    TypeMismatchError( expected, given )

    This exception is raised when assigning a payload to a Single whose type lock differs from the payload's type.
    given is None when the value has no payload type at all (e.g. a plain int).
    """
    def __str__( self ):
        given = self.args[1]
        return "Single is locked to {}; refusing a payload of type {}.".format(
            describeTag( self.args[0] ),
            describeTag( given ) if given is not None else "\"{}\"".format( self.args[2] )
        )

class IterationInProgressError( NBTError, RuntimeError ):
    """This exception is raised when an Array is structurally modified while it is being traversed."""
    def __str__( self ):
        return "Cannot modify an Array while iterating through it."

def describeTag( tagType ):
    """
    Returns a short description of a tag with the given tagType, including the internal name and numeric type (e.g. TAG_Compound (10) ).
    If tagType does not represent a valid tag, returns "Unknown (<tagType>)".
    """
    if tagType < 0 or tagType >= TAG_COUNT:
        return "Unknown ({:d})".format( tagType )
    return "{} ({:d})".format( TAG_NAMES[tagType], tagType )

#_tls
def tagListString( length, tagType ):
    """
    Returns a str summarizing the contents of a TAG_List with the given length and tagType.
    Return "0 entries" if length == 0.
    Otherwise, return "<length> <name of tag>(s)".
    """
    if length == 0:
        return "0 entries"
    return "{:d} {:s}{}".format( length, TAG_NAMES[tagType], "s" if length != 1 else "" )

#_avtt
def assertValidTagType( tagType ):
    """Raises UnknownTagTypeError if the given tagType is unrecognized"""
    if tagType < 0 or tagType >= TAG_COUNT:
        raise UnknownTagTypeError( tagType )

#_r
def read( b, i, n, end ):
    """
    Returns the n bytes of b (a bytes-like object) starting at offset i.
    Raises UnexpectedEndOfInputError if fewer than n bytes remain before end.
    """
    j = i + n
    if n < 0 or j > end:
        raise UnexpectedEndOfInputError( i, n, end )
    return bytes( b[i:j] )

#_u
def unpack( s, b, i, end ):
    """
    Unpacks the first value of struct s from b at offset i.
    Raises UnexpectedEndOfInputError if the struct extends past end.
    """
    if i + s.size > end:
        raise UnexpectedEndOfInputError( i, s.size, end )
    return s.unpack_from( b, i )[0]

#_ris
def readInts( b, i, n, end, a=None ):
    """
    Reads n signed, big-endian, 4-byte integers from b at offset i into an array and returns it.
    If a (an empty array) is given, it is filled instead of creating a new array.
    array assumes native-endianness, so on little-endian systems we reverse the byte order with byteswap().
    """
    if a is None:
        a = array( SIGNED_INT_TYPE )
    a.frombytes( read( b, i, 4 * n, end ) )
    if sys.byteorder == "little":
        a.byteswap()
    return a
