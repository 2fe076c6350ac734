#Decompression of Region chunk payloads.
#Chunks are stored as compressed NBT documents; the compression byte in each chunk record says how:
#    1 = gzip (RFC1952)
#    2 = zlib (RFC1950)
#Only zlib is decoded here. gzip is recognized so it can be reported, but is not supported.

import zlib

from nbtree.shared import DecompressionError, BufferTooSmallError

#Compression types
COMPRESSION_NONE = 0
COMPRESSION_GZIP = 1
COMPRESSION_ZLIB = 2

def decompress( data, capacity ):
    """
    Decompresses data (a bytes-like zlib stream) and returns the result as bytes.
    capacity is the largest number of bytes the caller is willing to accept.

    Raises BufferTooSmallError if the decompressed data would exceed capacity.
    This is retryable: call decompress() again with a larger capacity.
    Raises DecompressionError if data is corrupt or truncated.
    """
    #zlib treats a max_length of 0 as "unlimited"
    if capacity < 1:
        raise ValueError( "capacity must be positive, not {:d}.".format( capacity ) )
    d = zlib.decompressobj()
    try:
        out = d.decompress( data, capacity )
    except zlib.error as e:
        raise DecompressionError( "Corrupt zlib stream: {}".format( e ) ) from e

    if d.eof:
        return out
    #Output stopped at capacity with input left over, or right at capacity before the stream's end marker.
    if d.unconsumed_tail or len( out ) >= capacity:
        raise BufferTooSmallError( capacity )
    raise DecompressionError( "Truncated zlib stream." )
