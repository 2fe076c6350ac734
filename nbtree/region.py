#This module decodes Region files (.mca / .mcr).
#
#Region files are divided into 4KiB blocks called sectors, and start with an 8KiB header:
#    * The first 4KiB consists of 1024 locations, one per chunk slot. Each location is 4 bytes long:
#      a 3-byte, big-endian offset of the chunk record (in sectors), then a 1-byte size of the record (in sectors).
#      If a location's offset and size are both 0, the slot is unallocated (the chunk hasn't been generated yet).
#    * The remaining 4KiB consists of 1024 timestamps; 4-byte, big-endian unsigned integers.
#The slot of a chunk with local chunk coordinates (x,z) is x + 32*z.
#
#Each allocated slot's location points at a chunk record:
#    * Length: 4-byte, big-endian integer. Counts the compression byte and the payload.
#    * Compression: 1 byte. See COMPRESSION_* in nbtree.compression.
#    * Payload: length - 1 bytes of compressed NBT.

import re
import os.path
import logging
from concurrent.futures import ThreadPoolExecutor

from nbtree.shared import (
    NBTFormatError, MalformedStreamError, UnsupportedCompressionError, UnexpectedEndOfInputError,
    TruncatedContainerError, DecompressionError, BufferTooSmallError, WrongTagError,
    TAG_COMPOUND, _UI, _CH
)
from nbtree.compression import decompress, COMPRESSION_GZIP, COMPRESSION_ZLIB
from nbtree.parse import Parser

logger = logging.getLogger( __name__ )

#Layout
SECTOR_SIZE = 4096
SLOT_COUNT  = 1024
HEADER_SIZE = 2 * SECTOR_SIZE

#Decompression buffer limits.
#Chunks are decompressed into a buffer of INITIAL_CAPACITY bytes; if that's too small it grows by CAPACITY_INCREMENT until MAX_CAPACITY is reached.
INITIAL_CAPACITY   = 65536
CAPACITY_INCREMENT = 65536
MAX_CAPACITY       = 16 * 1024 * 1024

#Regular expression that matches region filenames; i.e. filenames of the form "r.{x}.{z}.mca" or "r.{x}.{z}.mcr" (where x and z are region coordinates)
RE_FILENAME = re.compile( r"^r\.(-?\d+)\.(-?\d+)\.mc[ar]$", re.IGNORECASE )

class Chunk:
    """
    One of the 1024 slots of a Region, as produced by Region.mapChunks().

    index       Slot index in the location table, lx + 32*lz.
    lx, lz      Chunk coordinates within the region, in [0,31].
    x, z        Absolute chunk coordinates if the region's coordinates are known, otherwise the same as lx, lz.
    offset      Byte offset of the chunk record within the file.
    allocsize   Number of bytes allocated to the record (a multiple of SECTOR_SIZE).
    timestamp   Last modification time from the timestamp table (seconds since the unix epoch), uninterpreted.
    size        Size of the compressed payload in bytes.
    compression Compression type from the record header.
    data        Decompressed NBT bytes. Empty for unallocated slots, and for slots that failed before decompressing.
    nbt         Root TAG_Compound of the decoded tree, or None.
    error       The NBTFormatError that stopped this slot from decoding, or None.
    """
    __slots__ = ( "index", "lx", "lz", "x", "z", "offset", "allocsize", "timestamp", "size", "compression", "data", "nbt", "error" )

    def __init__( self, index, rx=None, rz=None ):
        self.index = index
        self.lz, self.lx = divmod( index, 32 )
        self.x = self.lx if rx is None else 32 * rx + self.lx
        self.z = self.lz if rz is None else 32 * rz + self.lz
        self.offset      = 0
        self.allocsize   = 0
        self.timestamp   = 0
        self.size        = 0
        self.compression = 0
        self.data        = b""
        self.nbt         = None
        self.error       = None

    def isAllocated( self ):
        """Returns True if the location table points this slot at a chunk record."""
        return self.offset != 0 or self.allocsize != 0
    allocated = property( isAllocated )

    def isOk( self ):
        """Returns True if this slot is allocated and decoded without error."""
        return self.allocated and self.error is None
    ok = property( isOk )

    def __repr__( self ):
        if not self.allocated:
            return "<Chunk {:d} ({:d},{:d}): unallocated>".format( self.index, self.x, self.z )
        if self.error is not None:
            return "<Chunk {:d} ({:d},{:d}): {}>".format( self.index, self.x, self.z, self.error )
        return "<Chunk {:d} ({:d},{:d}): {:d} bytes>".format( self.index, self.x, self.z, len( self.data ) )

class Region:
    """
    Reads the chunks of a Region file.

    Usage:
        region = Region( "world/region/r.0.-1.mca" )
        if region.good():
            for chunk in region:
                if chunk.ok:
                    chunk.nbt.print( maxdepth=1 )

    The whole file is read into memory by open() and never modified afterwards.
    Chunks are decoded by mapChunks(); the accessors below call it on first use.
    """
    __slots__ = ( "path", "rx", "rz", "initialCapacity", "capacityIncrement", "maxCapacity", "_data", "_good", "_chunks" )

    def __init__( self, path=None, rx=None, rz=None, initialCapacity=INITIAL_CAPACITY, capacityIncrement=CAPACITY_INCREMENT, maxCapacity=MAX_CAPACITY ):
        """
        Constructor.
        path is an optional path to a region file. If given, the file is opened immediately; check good() afterwards.
        rx and rz are the region's coordinates. If they aren't given, they're parsed from path's filename when it matches r.{x}.{z}.mca.
        initialCapacity, capacityIncrement and maxCapacity override the module-level decompression buffer limits for this region.
        """
        if initialCapacity < 1 or capacityIncrement < 1 or maxCapacity < initialCapacity:
            raise ValueError( "Invalid decompression buffer limits: {:d}, {:d}, {:d}.".format( initialCapacity, capacityIncrement, maxCapacity ) )
        self.path = None
        self.rx   = rx
        self.rz   = rz
        self.initialCapacity   = initialCapacity
        self.capacityIncrement = capacityIncrement
        self.maxCapacity       = maxCapacity
        self._data   = b""
        self._good   = False
        self._chunks = None
        if path is not None:
            self.open( path )

    def open( self, path ):
        """
        Reads the region file at path into memory.
        Returns True if the file could be read and isn't empty, False otherwise.
        """
        self.path = path
        if self.rx is None and self.rz is None:
            match = RE_FILENAME.fullmatch( os.path.basename( path ) )
            if match:
                self.rx = int( match.group(1) )
                self.rz = int( match.group(2) )
        try:
            with open( path, "rb" ) as file:
                data = file.read()
        except OSError as e:
            logger.warning( "Unable to open region file %s: %s", path, e )
            data = b""
        else:
            if len( data ) == 0:
                logger.warning( "Region file %s is empty.", path )
        return self.load( data )

    def load( self, data ):
        """
        Like open(), but takes the contents of a region file as a bytes-like object.
        Returns True if data isn't empty.
        """
        self._data   = bytes( data )
        self._good   = len( self._data ) > 0
        self._chunks = None
        return self._good

    def good( self ):
        """Returns True if the last open() / load() produced a non-empty buffer."""
        return self._good

    def mapChunks( self, workers=1, feedback=None ):
        """
        Decodes every slot in the location table and returns a list of 1024 Chunks in slot order.

        workers is the number of threads used to decode slots. Defaults to 1 (decode on the calling thread).
        feedback is an optional callable. If given, it's called with the fraction of slots processed so far (a float in (0,1]) after each slot.

        Raises TruncatedContainerError if the buffer is too small to hold the header.
        A slot that fails to decode doesn't stop the others; its exception is stored in that Chunk's error.
        """
        data = self._data
        if len( data ) < HEADER_SIZE:
            raise TruncatedContainerError( len( data ), HEADER_SIZE )

        if workers > 1:
            with ThreadPoolExecutor( max_workers=workers ) as executor:
                chunks = self._collect( executor.map( self._mapSlot, range( SLOT_COUNT ) ), feedback )
        else:
            chunks = self._collect( map( self._mapSlot, range( SLOT_COUNT ) ), feedback )

        allocated = 0
        failed = 0
        for c in chunks:
            if c.allocated:
                allocated += 1
                if c.error is not None:
                    failed += 1
        logger.info( "Mapped %s: %d of %d slots allocated, %d failed.", self.path or "region", allocated, SLOT_COUNT, failed )

        self._chunks = chunks
        return chunks

    @staticmethod
    def _collect( results, feedback ):
        chunks = []
        for c in results:
            chunks.append( c )
            if feedback is not None:
                feedback( len( chunks ) / SLOT_COUNT )
        return chunks

    def _mapSlot( self, i ):
        """Builds the Chunk for slot i. Decoding errors are recorded on the Chunk rather than raised."""
        data  = self._data
        chunk = Chunk( i, self.rx, self.rz )
        location        = _UI.unpack_from( data, 4 * i )[0]
        chunk.offset    = ( location >> 8 ) * SECTOR_SIZE
        chunk.allocsize = ( location & 0xFF ) * SECTOR_SIZE
        chunk.timestamp = _UI.unpack_from( data, SECTOR_SIZE + 4 * i )[0]
        if not chunk.allocated:
            return chunk

        try:
            self._readRecord( chunk )
        except NBTFormatError as e:
            chunk.error = e
            logger.warning( "Chunk %d (%d,%d) in %s failed to decode: %s", i, chunk.x, chunk.z, self.path or "region", e )
        return chunk

    def _readRecord( self, chunk ):
        data = self._data
        end  = len( data )
        o    = chunk.offset
        if o < HEADER_SIZE:
            raise MalformedStreamError( "Chunk record at offset {:d} overlaps the region header.".format( o ) )
        if o + _CH.size > end:
            raise UnexpectedEndOfInputError( o, _CH.size, end )

        length, compression = _CH.unpack_from( data, o )
        chunk.compression = compression
        if length < 1:
            raise MalformedStreamError( "Chunk record at offset {:d} has length {:d}.".format( o, length ) )
        if o + 4 + length > end:
            raise UnexpectedEndOfInputError( o + 4, length, end )
        chunk.size = length - 1

        if compression == COMPRESSION_GZIP:
            raise UnsupportedCompressionError( compression )
        elif compression != COMPRESSION_ZLIB:
            raise MalformedStreamError( "Unknown chunk compression type: {:d}.".format( compression ) )

        chunk.data = self._inflate( memoryview( data )[ o + _CH.size : o + 4 + length ], chunk )
        root = Parser().build( chunk.data )
        #Every chunk is a document rooted at a TAG_Compound
        if root is None:
            raise MalformedStreamError( "Chunk {:d} contains no tags.".format( chunk.index ) )
        if root.tagType != TAG_COMPOUND:
            raise WrongTagError( TAG_COMPOUND, root.tagType )
        chunk.nbt = root

    def _inflate( self, payload, chunk ):
        """Decompresses payload, growing the output buffer until it fits or maxCapacity is reached."""
        capacity = self.initialCapacity
        while True:
            try:
                return decompress( payload, capacity )
            except BufferTooSmallError:
                if capacity >= self.maxCapacity:
                    raise DecompressionError( "Chunk {:d} decompresses to more than {:d} bytes.".format( chunk.index, self.maxCapacity ) ) from None
                grown = min( capacity + self.capacityIncrement, self.maxCapacity )
                logger.debug( "Chunk %d needs more than %d bytes; retrying with %d.", chunk.index, capacity, grown )
                capacity = grown

    def getChunks( self ):
        """Returns the list of all 1024 Chunks, mapping them first if mapChunks() hasn't been called yet."""
        chunks = self._chunks
        if chunks is None:
            chunks = self.mapChunks()
        return chunks
    chunks = property( getChunks )

    def getChunk( self, x, z ):
        """
        Returns the Chunk at chunk coordinates (x,z).
        x and z can be local ([0,31]) or absolute chunk coordinates; only their position within the region matters.
        """
        return self.getChunks()[ ( x % 32 ) + ( z % 32 ) * 32 ]

    def iterChunks( self ):
        """Iterates over every allocated Chunk in slot order."""
        for c in self.getChunks():
            if c.allocated:
                yield c

    def __getitem__( self, key ):
        """region[x, z] is the same as region.getChunk( x, z )."""
        x, z = key
        return self.getChunk( x, z )

    def __len__( self ):
        """Returns the number of allocated slots."""
        return sum( 1 for c in self.getChunks() if c.allocated )

    def __bool__( self ):
        #Truth testing shouldn't have to decode every chunk
        return self._good

    __iter__ = iterChunks

    def __repr__( self ):
        if self.rx is None:
            return "<Region {}>".format( self.path )
        return "<Region {} ({:d},{:d})>".format( self.path, self.rx, self.rz )
