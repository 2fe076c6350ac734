"""
NBT decoding.

Parser.build() decodes raw (uncompressed) NBT bytes into a tree of Single and Array nodes.
read() is a convenience wrapper that reads a whole standalone NBT document, optionally gzip or zlib compressed.
"""
import gzip
import zlib
import logging

from nbtree.shared import (
    NBTFormatError, RangeIllegalError, MalformedStreamError, NullIteratorError, UnexpectedEndOfInputError,
    DecompressionError, DuplicateNameError, WrongTagError,
    read as _r, unpack as _u, readInts as _ris, assertValidTagType as _avtt,
    _B, _UB, _S, _US, _I, _L, _F, _D, _TL,
    TAG_END, TAG_COMPOUND,
    ArrayType, ParserStatus
)
from nbtree.tag import Single, Array, Byte, Short, Int, Long, Float, Double, ByteArray, String, IntArray

logger = logging.getLogger( __name__ )

#Deepest nesting of Lists / Compounds the parser will follow before declaring the stream malformed.
#Each Compound level costs two Python frames (_named + _readCompound), so this must stay well under half the recursion limit.
MAX_DEPTH = 256

#Smallest number of bytes a bare payload of each tagType can occupy.
#Used to reject TAG_List counts that can't possibly fit in the remaining input before reading any elements.
_MIN_PAYLOAD_SIZE = (
    0,  #TAG_END
    1,  #TAG_BYTE
    2,  #TAG_SHORT
    4,  #TAG_INT
    8,  #TAG_LONG
    4,  #TAG_FLOAT
    8,  #TAG_DOUBLE
    4,  #TAG_BYTE_ARRAY
    2,  #TAG_STRING
    5,  #TAG_LIST
    1,  #TAG_COMPOUND
    4   #TAG_INT_ARRAY
)

class Parser:
    """
    Builds a tree from raw NBT bytes.

    Usage:
        parser = Parser()
        root = parser.build( data )             #Decode all of data
        root = parser.build( data, 16, 1024 )   #Decode only data[16:1024]

    A Parser can be reused, but not shared between threads; use one Parser per thread.
    """
    __slots__ = ( "strict", "position", "_status", "_b", "_i", "_start", "_end", "_depth", "_fb" )

    def __init__( self, strict=False ):
        """
        strict is an optional boolean that defaults to False.
            If True, a TAG_Compound containing two tags with the same name raises DuplicateNameError.
            If False, duplicates are kept in stream order, and lookups by name return the first of them.
        """
        self.strict   = strict
        self.position = 0   #Cursor position after the last build(), or where it failed
        self._status  = ParserStatus.GOOD
        self._b       = None
        self._i       = 0
        self._start   = 0
        self._end     = 0
        self._depth   = 0
        self._fb      = None

    def status( self ):
        """Returns the ParserStatus of the last call to build()."""
        return self._status

    def build( self, buffer, start=0, end=None, feedback=None ):
        """
        Decodes the named tag at buffer[start:end] and returns it.

        buffer is a bytes-like object containing uncompressed NBT data.
        start and end delimit the half-open byte range to decode. end defaults to len( buffer ).
        feedback is an optional callable. If given, it's called with the fraction of the range consumed so far (a float in [0,1])
            every time a TAG_Compound member has been decoded.

        Returns the root tag (a Compound Array for well-formed documents),
        or None if the range is empty or starts with a TAG_End.

        On failure, raises an NBTFormatError subclass; no partially built tree is returned.
        status() reports the kind of failure.
        """
        self._status = ParserStatus.GOOD
        try:
            if buffer is None or start is None:
                raise NullIteratorError( "No buffer or cursor to decode." )
            length = len( buffer )
            if end is None:
                end = length
            if start < 0 or start > end or end > length:
                raise RangeIllegalError( start, end, length )

            self._b     = buffer
            self._i     = start
            self._start = start
            self._end   = end
            self._depth = 0
            self._fb    = feedback
            try:
                return self._named()
            except RecursionError:
                #The caller may already be deep in the stack when it calls build()
                raise MalformedStreamError( "Tags are nested too deeply to decode." ) from None
        except NBTFormatError as e:
            self._status = e.status
            logger.debug( "NBT decode failed at offset %d: %s", self._i, e )
            raise
        finally:
            self.position = self._i
            self._b  = None
            self._fb = None

    def _named( self ):
        """
        Reads a named tag header and its payload.
        Returns None if the header is a TAG_End, or if the range is exhausted
        (both mark a TAG_Compound boundary rather than an error).
        """
        i = self._i
        if i >= self._end:
            return None
        tagType = _u( _UB, self._b, i, self._end )
        self._i = i + 1
        if tagType == TAG_END:
            return None
        _avtt( tagType )
        name = self._string()
        return _READERS[ tagType ]( self, name )

    #Read helpers; each advances the cursor past what it read.
    def _read( self, n ):
        i = self._i
        b = _r( self._b, i, n, self._end )
        self._i = i + n
        return b

    def _unpack( self, s ):
        i = self._i
        v = _u( s, self._b, i, self._end )
        self._i = i + s.size
        return v

    def _string( self ):
        i = self._i
        raw = self._read( self._unpack( _US ) )
        try:
            return raw.decode( "utf-8" )
        except UnicodeDecodeError as e:
            raise MalformedStreamError( "Invalid UTF-8 in string at offset {:d}.".format( i ) ) from e

    def _length( self ):
        """Reads a 4-byte array / list length, which may not be negative."""
        i = self._i
        n = self._unpack( _I )
        if n < 0:
            raise MalformedStreamError( "Negative length {:d} at offset {:d}.".format( n, i ) )
        return n

    def _enter( self ):
        #Callers must pair this with a "finally: self._depth -= 1"
        if self._depth >= MAX_DEPTH:
            raise MalformedStreamError( "Tags are nested more than {:d} levels deep.".format( MAX_DEPTH ) )
        self._depth += 1

    def _readByte( self, name ):
        return Single( name, Byte( self._unpack( _B ) ) )

    def _readShort( self, name ):
        return Single( name, Short( self._unpack( _S ) ) )

    def _readInt( self, name ):
        return Single( name, Int( self._unpack( _I ) ) )

    def _readLong( self, name ):
        return Single( name, Long( self._unpack( _L ) ) )

    def _readFloat( self, name ):
        return Single( name, Float( self._unpack( _F ) ) )

    def _readDouble( self, name ):
        return Single( name, Double( self._unpack( _D ) ) )

    def _readByteArray( self, name ):
        n = self._length()
        return Single( name, ByteArray( self._read( n ) ) )

    def _readString( self, name ):
        return Single( name, String( self._string() ) )

    def _readIntArray( self, name ):
        #Note: n is the number of integers in the array, NOT the number of bytes.
        n = self._length()
        a = _ris( self._b, self._i, n, self._end, IntArray() )
        self._i += 4 * n
        return Single( name, a )

    def _readList( self, name ):
        """
        Reads a TAG_List payload: the element tagType, the element count, then that many bare (unnamed) payloads.
        """
        i = self._i
        if i + _TL.size > self._end:
            raise UnexpectedEndOfInputError( i, _TL.size, self._end )
        tagType, n = _TL.unpack_from( self._b, i )
        self._i = i + _TL.size
        _avtt( tagType )
        if n < 0:
            raise MalformedStreamError( "Negative length {:d} at offset {:d}.".format( n, i + 1 ) )
        if tagType == TAG_END and n > 0:
            raise MalformedStreamError( "Non-empty TAG_List of TAG_End at offset {:d}.".format( i ) )
        needed = n * _MIN_PAYLOAD_SIZE[ tagType ]
        if self._i + needed > self._end:
            raise UnexpectedEndOfInputError( self._i, needed, self._end )

        self._enter()
        try:
            tag = Array( name, ArrayType.LIST, tagType )
            reader = _READERS[ tagType ]
            for _ in range( n ):
                tag.addTag( reader( self, "" ) )
            return tag
        finally:
            self._depth -= 1

    def _readCompound( self, name ):
        """
        Reads a TAG_Compound payload: named tags until a TAG_End (or the end of the range) is reached.
        """
        self._enter()
        try:
            tag = Array( name, ArrayType.COMPOUND )
            seen = set() if self.strict else None
            fb = self._fb
            total = self._end - self._start

            child = self._named()
            while child is not None:
                if seen is not None:
                    if child.name in seen:
                        raise DuplicateNameError( child.name )
                    seen.add( child.name )
                tag.addTag( child )
                if fb is not None:
                    fb( ( self._i - self._start ) / total )
                child = self._named()
            return tag
        finally:
            self._depth -= 1

#Tuple of reader methods indexed by tagType.
_READERS = (
    None,                       #TAG_END
    Parser._readByte,           #TAG_BYTE
    Parser._readShort,          #TAG_SHORT
    Parser._readInt,            #TAG_INT
    Parser._readLong,           #TAG_LONG
    Parser._readFloat,          #TAG_FLOAT
    Parser._readDouble,         #TAG_DOUBLE
    Parser._readByteArray,      #TAG_BYTE_ARRAY
    Parser._readString,         #TAG_STRING
    Parser._readList,           #TAG_LIST
    Parser._readCompound,       #TAG_COMPOUND
    Parser._readIntArray        #TAG_INT_ARRAY
)

def read( source, compression="gzip", strict=False ):
    """
    Reads a standalone NBT document from source and returns its root TAG_Compound as an Array.

    source can be the path of the file to read from (as a str), a readable file-like object, or a bytes-like object.
    compression is an optional parameter that can be None, "gzip", or "zlib". Defaults to "gzip" (as used by level.dat and player files).
    strict is passed on to Parser().

    Raises MalformedStreamError if the document is empty, and WrongTagError if its root isn't a TAG_Compound.
    """
    if isinstance( source, str ):
        with open( source, "rb" ) as file:
            data = file.read()
    elif hasattr( source, "read" ):
        data = source.read()
    else:
        data = source

    try:
        if compression is None:
            pass
        elif compression == "gzip":
            data = gzip.decompress( data )
        elif compression == "zlib":
            data = zlib.decompress( data )
        else:
            raise ValueError( "Unknown compression type \"{}\".".format( compression ) )
    except ( OSError, EOFError, zlib.error ) as e:
        raise DecompressionError( "Unable to decompress NBT document: {}".format( e ) ) from e

    root = Parser( strict ).build( data )
    if root is None:
        raise MalformedStreamError( "NBT document is empty." )
    if root.tagType != TAG_COMPOUND:
        raise WrongTagError( TAG_COMPOUND, root.tagType )
    return root
