"""
nbtree's tag module provides the value model that decoded NBT documents are built from.

A decoded tree is made of two kinds of nodes:
    * Single: a leaf holding exactly one payload (Byte, Short, Int, Long, Float, Double, ByteArray, String or IntArray).
    * Array:  an interior node holding an ordered sequence of child nodes. An Array is either a List or a Compound.

Payload classes (Byte, Int, String, etc.) subclass the Python type they represent and carry their NBT tagType.
"""
import math
import itertools

from array import array
from io import StringIO

from nbtree.shared import (
    WrongTagError, ConversionError, OutOfBoundsError, TypeMismatchError, IterationInProgressError,
    TAG_END, TAG_BYTE, TAG_SHORT, TAG_INT, TAG_LONG, TAG_FLOAT, TAG_DOUBLE, TAG_BYTE_ARRAY, TAG_STRING, TAG_LIST, TAG_COMPOUND, TAG_INT_ARRAY,
    TAG_NAMES, SIGNED_INT_TYPE,
    Qualifier, ArrayType,
    tagListString as _tls, assertValidTagType as _avtt
)

INF = math.inf

#Base class methods called at various locations
_int_repr    = int.__repr__
_float_repr  = float.__repr__
_str_repr    = str.__repr__
_array_new   = array.__new__

#Returns a payload class that stores a primitive like byte, short, int, or long.
def _makeIntPayloadClass( classname, tt, vmin, vmax ):
    class _IntPayload( _BaseIntPayload ):
        def __init__( self, value=None ):
            #Note: self is set by int's __new__ prior to calling __init__.
            #self is guaranteed to be an int, unlike value. The only reason the value parameter is here is so __init__ won't raise errors.
            if self < vmin or self > vmax:
                raise OutOfBoundsError( self, vmin, vmax )
        tagType = tt
        min = vmin
        max = vmax
        __slots__ = ()

    _IntPayload.__name__ = classname
    _IntPayload.__qualname__ = classname
    _IntPayload.__doc__ = \
        """
        Represents a {0:} payload.
        {0:} is an int subclass restricted to the range [{1:d}, {2:d}].
        """.format( classname, vmin, vmax )
    return _IntPayload

class _BasePayload:
    """Base class for all payload classes."""
    tagType = -1

    __slots__ = ()

    def _s( self ):
        """Returns the text used to display this payload in a tree dump."""
        raise NotImplementedError()

class _BaseIntPayload( int, _BasePayload ):
    """
    Base class for all integral payloads (Byte, Short, Int, Long).
    Defines two static members min and max that represent the bounds (inclusive) of the range of values that can be represented by that primitive.
    """
    value = property( int, doc="Read-only property. Converts this payload to an int." )

    __slots__ = ()

    min =  1
    max = -1

    def __repr__( self ):
        return "{}({})".format( self.__class__.__name__, _int_repr( self ) )
    def _s( self ):
        return "{:d}".format( self )

Byte  = _makeIntPayloadClass( "Byte",  TAG_BYTE,                  -128,                 127 )
Short = _makeIntPayloadClass( "Short", TAG_SHORT,               -32768,               32767 )
Int   = _makeIntPayloadClass( "Int",   TAG_INT,            -2147483648,          2147483647 )
Long  = _makeIntPayloadClass( "Long",  TAG_LONG,  -9223372036854775808, 9223372036854775807 )

class Float( float, _BasePayload ):
    """
    Represents a Float payload (a binary32 float).
    Float is a float subclass and generally works the same way and in the same places as a float would.
    """
    tagType = TAG_FLOAT

    value = property( float, doc="Read-only property. Converts this payload to a float." )

    __slots__ = ()

    def __repr__( self ):
        return "Float({})".format( _float_repr( self ) )
    def _s( self ):
        return "{:.9g}".format( self )

class Double( float, _BasePayload ):
    """
    Represents a Double payload (a binary64 float).
    Double is a float subclass and generally works the same way and in the same places as a float would.
    """
    tagType = TAG_DOUBLE

    value = property( float, doc="Read-only property. Converts this payload to a float." )

    __slots__ = ()

    def __repr__( self ):
        return "Double({})".format( _float_repr( self ) )
    def _s( self ):
        return "{:.17g}".format( self )

class ByteArray( array, _BasePayload ):
    """
    Represents a ByteArray payload.
    ByteArray is an array of signed bytes; its values are limited to the range [-128, 127].

    A ByteArray can be initialized from bytes (each byte is reinterpreted as signed) or from an iterable of ints:
        ByteArray( b"\\x00\\xff" )  #ByteArray([0, -1])
        ByteArray( ( 1, -2 ) )    #ByteArray([1, -2])
    """
    tagType = TAG_BYTE_ARRAY

    __slots__ = ()

    #array implements __new__ rather than __init__
    def __new__( cls, *args, **kwargs ):
        #array only reinterprets bytes / bytearray initializers; anything else is iterated as unsigned ints
        if len( args ) > 0 and isinstance( args[0], memoryview ):
            args = ( args[0].tobytes(), ) + args[1:]
        return _array_new( cls, "b", *args, **kwargs )

    def __repr__( self ):
        if len( self ) > 0:
            return "ByteArray({})".format( self.tolist() )
        return "ByteArray()"
    def _s( self ):
        l = len( self )
        return "[{:d} byte{}]".format( l, "s" if l != 1 else "" )

class String( str, _BasePayload ):
    """
    Represents a String payload.
    String is a str subclass and generally works the same way and in the same places as a str would.

    A String can be no longer than 65535 bytes when UTF-8 encoded.
    """
    tagType = TAG_STRING

    value = property( str, doc="Read-only property. Converts this payload to a str." )

    __slots__ = ()

    def __init__( self, *args, **kwargs ):
        l = len( self.encode() )
        if l > 65535:
            raise OutOfBoundsError( l, 0, 65535 )

    def __repr__( self ):
        return "String({})".format( _str_repr( self ) )
    def _s( self ):
        return str( self )

class IntArray( array, _BasePayload ):
    """
    Represents an IntArray payload.
    IntArray is a signed 4-byte int array subclass; its values are limited to a signed 4-byte integer's range: [-2147483648, 2147483647].
    """
    tagType = TAG_INT_ARRAY

    __slots__ = ()

    def __new__( cls, *args, **kwargs ):
        return _array_new( cls, SIGNED_INT_TYPE, *args, **kwargs )

    def __repr__( self ):
        if len( self ) > 0:
            return "IntArray({})".format( self.tolist() )
        return "IntArray()"
    def _s( self ):
        l = len( self )
        return "[{:d} int{}]".format( l, "s" if l != 1 else "" )

#Tuple of payload classes indexed by tagType.
#TAG_End has no payload, and TAG_List / TAG_Compound are represented by Array instead.
_PAYLOADCLASS = (
    None,       #TAG_END
    Byte,       #TAG_BYTE
    Short,      #TAG_SHORT
    Int,        #TAG_INT
    Long,       #TAG_LONG
    Float,      #TAG_FLOAT
    Double,     #TAG_DOUBLE
    ByteArray,  #TAG_BYTE_ARRAY
    String,     #TAG_STRING
    None,       #TAG_LIST
    None,       #TAG_COMPOUND
    IntArray    #TAG_INT_ARRAY
)

#Mapping of python types -> payload classes.
#NBT doesn't have a boolean type. Instead, a TAG_Byte with a value of 0 for False and 1 for True is usually used, so bool maps to Byte.
#int and float are deliberately absent: int could be a Byte, Short, Int or Long, and float could be a Float or Double.
_PAYLOADMAP = {
    bool:       Byte,
    bytes:      ByteArray,
    bytearray:  ByteArray,
    memoryview: ByteArray,
    str:        String
}

def _payloadClass( value ):
    """Returns the payload class value belongs to or converts to, or None if there isn't exactly one."""
    if isinstance( value, _BasePayload ):
        return _PAYLOADCLASS[ value.tagType ]
    return _PAYLOADMAP.get( value.__class__ )

def _sameReal( a, b ):
    #NaN payloads compare equal to each other so identical documents decode to equal trees
    return a == b or ( a != a and b != b )

class Tag:
    """
    Base class for nodes in a decoded tree.

    Every node has a name (a str, possibly empty) and a qualifier (Qualifier.SINGLE or Qualifier.ARRAY).
    The name is only meaningful when the node is a member of a Compound.
    """
    qualifier = None

    __slots__ = ( "name", )

    #Tags compare by value, so they can't be used as dict keys or set members
    __hash__ = None

    def __init__( self, name="" ):
        if not isinstance( name, str ):
            raise TypeError( "Tag names must be str, not \"{}\".".format( name.__class__.__name__ ) )
        self.name = name

    def print( self, maxdepth=INF, maxlen=INF, fn=print ):
        """
        Recursively pretty-print the tag and its children.
        maxdepth is the maximum recursive depth to pretty-print.
            0 prints only this tag,
            1 prints this tag and its children,
            2 prints this tag, its children, and their children, and so on.
            math.inf is the default and prints the entire tree.
        maxlen is the maximum number of tags per List / Compound to print.
            For example, 64 would print only the first 64 entries in a list, and print a single ... for the remaining entries.
            math.inf is the default and prints every tag in a list / compound.
        fn is the callable that will be used to print a line of text, and defaults to the built-in print function.

        Example:
        >>> root.print()
        TAG_Compound("example"): 2 entries {
            TAG_String("str"): Example string
            TAG_List("floats"): 2 TAG_Floats [
                TAG_Float(0): 5.0999999
                TAG_Float(1): -1.20000005
            ]
        }
        """
        return self._p( "(\"{}\")".format( self.name ), 0, maxdepth, maxlen, fn )

    def sprint( self, maxdepth=INF, maxlen=INF ):
        """
        Recursively pretty-print the tag and its children to a string and return it.
        See help( Tag.print ) for a description of maxdepth and maxlen.
        """
        with StringIO() as out:
            self.print( maxdepth, maxlen, lambda x: out.write( x + "\n" ) )
            return out.getvalue()

    def _p( self, name, depth, maxdepth, maxlen, fn ):
        """
        Recursive step of print().
        name is a str inserted after the tag type indicating the name/index of that tag within its parent. For example:
            "(5)" for a List entry with index 5
            "(\"example\")" for a Compound entry with name "example"
        depth is the current recursive depth.
        """
        raise NotImplementedError()

class Single( Tag ):
    """
    A leaf node holding exactly one payload.

    A Single is type-locked to the payload type it was constructed with:
        s = Single( "health", Short( 20 ) )
        s.setPayload( Short( 18 ) ) #OK
        s.setPayload( Int( 18 ) )   #Raises TypeMismatchError; s.payload is still Short(18)
    """
    qualifier = Qualifier.SINGLE

    __slots__ = ( "_v", )

    def __init__( self, name, payload ):
        """
        Single( name, payload )

        payload should be a payload instance (e.g. Int( 5 )).
        str, bytes, bytearray, memoryview and bool values are converted to String, ByteArray, ByteArray, ByteArray and Byte respectively.
        Any other value raises ConversionError.
        """
        super().__init__( name )
        c = _payloadClass( payload )
        if c is None:
            raise ConversionError( payload )
        self._v = payload if payload.__class__ is c else c( payload )

    def getPayload( self ):
        """Returns the current payload."""
        return self._v

    def setPayload( self, value ):
        """
        Replaces the payload with value.
        Raises TypeMismatchError and leaves the payload unchanged if value's payload type differs from this Single's type lock.
        """
        lock = self._v.tagType
        c = _payloadClass( value )
        if c is None or c.tagType != lock:
            raise TypeMismatchError( lock, None if c is None else c.tagType, value.__class__.__name__ )
        self._v = value if value.__class__ is c else c( value )
    payload = property( getPayload, setPayload )

    def getTagType( self ):
        """Returns the NBT tag type (e.g. TAG_INT) derived from the type lock."""
        return self._v.tagType
    tagType = property( getTagType )

    def __eq__( self, other ):
        if not isinstance( other, Single ):
            return NotImplemented
        if self.name != other.name or self.tagType != other.tagType:
            return False
        if self.tagType in ( TAG_FLOAT, TAG_DOUBLE ):
            return _sameReal( self._v, other._v )
        return self._v == other._v

    def __repr__( self ):
        return "Single({}, {!r})".format( _str_repr( self.name ), self._v )

    def _p( self, name, depth, maxdepth, maxlen, fn ):
        fn( "{}{}{}: {}".format( "    "*depth, TAG_NAMES[ self.tagType ], name, self._v._s() ) )

class Array( Tag ):
    """
    An interior node holding an ordered sequence of child nodes.

    arrayType is ArrayType.LIST or ArrayType.COMPOUND.
        * A List's children are unnamed and all share one tag type, listType.
        * A Compound's children are named and may be of any type.

    An Array also has a traversal cursor used by nextTag():
        tag = array.nextTag()
        while tag is not None:
            ...
            tag = array.nextTag()
    While a traversal is in progress (the cursor is not at the start), addTag() and removeTag() raise IterationInProgressError.
    The cursor returns to the start when nextTag() reaches the end, or when seek() is called.
    """
    qualifier = Qualifier.ARRAY

    __slots__ = ( "_at", "_lt", "_tags", "_pos", "_gen" )

    def __init__( self, name="", arrayType=ArrayType.COMPOUND, listType=TAG_END ):
        """
        Array( name="", arrayType=ArrayType.COMPOUND, listType=TAG_END )

        listType is the tag type (e.g. TAG_INT) of the elements of a List.
        An empty List with listType TAG_END adopts the type of the first tag added to it.
        """
        super().__init__( name )
        arrayType = ArrayType( arrayType )
        _avtt( listType )
        if arrayType == ArrayType.COMPOUND and listType != TAG_END:
            raise ValueError( "A Compound can't have a listType." )
        self._at   = arrayType
        self._lt   = listType
        self._tags = []
        self._pos  = 0  #Traversal cursor used by nextTag()
        self._gen  = 0  #Incremented on every structural change

    def getArrayType( self ):
        """Returns ArrayType.LIST or ArrayType.COMPOUND."""
        return self._at
    arrayType = property( getArrayType )

    def getListType( self ):
        """Returns the tag type of the elements of a List. For Compounds, returns TAG_END."""
        return self._lt
    listType = property( getListType )

    def getTagType( self ):
        """Returns TAG_LIST or TAG_COMPOUND."""
        return TAG_LIST if self._at == ArrayType.LIST else TAG_COMPOUND
    tagType = property( getTagType )

    def addTag( self, tag ):
        """
        Appends tag to the end of this Array and resets the traversal cursor.
        Raises IterationInProgressError if a traversal is in progress.
        Raises WrongTagError if this is a List and tag's type differs from the List's element type.
        """
        if not isinstance( tag, Tag ):
            raise TypeError( "Expected a Tag, got \"{}\".".format( tag.__class__.__name__ ) )
        if tag is self:
            raise ValueError( "An Array can't contain itself." )
        self._assertRewound()

        if self._at == ArrayType.LIST:
            tt = tag.tagType
            if self._lt == TAG_END:
                self._lt = tt
            elif tt != self._lt:
                raise WrongTagError( self._lt, tt )

        self._tags.append( tag )
        self._pos = 0
        self._gen += 1

    def removeTag( self, tag ):
        """
        Removes tag (compared by identity) from this Array and resets the traversal cursor.
        Returns True if tag was found and removed, False otherwise.
        Raises IterationInProgressError if a traversal is in progress.
        """
        self._assertRewound()
        tags = self._tags
        for i, t in enumerate( tags ):
            if t is tag:
                del tags[i]
                self._pos = 0
                self._gen += 1
                return True
        return False

    def tag( self, key ):
        """
        array.tag( name )  -> the first child with the given name, or None if there isn't one.
        array.tag( index ) -> the child at the given 0-based index. Raises IndexError unless 0 <= index < size().
        """
        if isinstance( key, str ):
            for t in self._tags:
                if t.name == key:
                    return t
            return None
        if isinstance( key, bool ) or not isinstance( key, int ):
            raise TypeError( "Array keys must be str or int, not \"{}\".".format( key.__class__.__name__ ) )
        if key < 0 or key >= len( self._tags ):
            raise IndexError( "Array index {:d} out of range [0,{:d}).".format( key, len( self._tags ) ) )
        return self._tags[key]

    def nextTag( self ):
        """
        Returns the child at the traversal cursor and advances the cursor.
        Returns None once every child has been returned; the cursor is then back at the start.
        """
        pos = self._pos
        if pos < len( self._tags ):
            self._pos = pos + 1
            return self._tags[pos]
        self._pos = 0
        return None

    def seek( self, pos=0 ):
        """Moves the traversal cursor to pos. seek() with no arguments rewinds it, ending any traversal in progress."""
        if pos < 0 or pos > len( self._tags ):
            raise IndexError( "Cursor position {:d} out of range [0,{:d}].".format( pos, len( self._tags ) ) )
        self._pos = pos

    def size( self ):
        """Returns the number of children."""
        return len( self._tags )

    def _assertRewound( self ):
        if self._pos != 0:
            raise IterationInProgressError()

    def __len__( self ):
        return len( self._tags )

    def __iter__( self ):
        #Iterating doesn't move the nextTag() cursor, but structural changes made mid-loop are detected on the next step.
        gen = self._gen
        tags = self._tags
        i = 0
        while i < len( tags ):
            if self._gen != gen:
                raise IterationInProgressError()
            yield tags[i]
            i += 1
        if self._gen != gen:
            raise IterationInProgressError()

    def __getitem__( self, key ):
        """Handles array[name] and array[index]. Like tag(), but raises KeyError for unknown names."""
        t = self.tag( key )
        if t is None:
            raise KeyError( key )
        return t

    def __contains__( self, name ):
        return self.tag( name ) is not None if isinstance( name, str ) else False

    def __eq__( self, other ):
        if not isinstance( other, Array ):
            return NotImplemented
        return (
            self.name == other.name and
            self._at  == other._at  and
            self._lt  == other._lt  and
            self._tags == other._tags
        )

    def __repr__( self ):
        if self._at == ArrayType.LIST:
            return "Array({}, LIST, {}, {!r})".format( _str_repr( self.name ), TAG_NAMES[ self._lt ], self._tags )
        return "Array({}, COMPOUND, {!r})".format( _str_repr( self.name ), self._tags )

    def _p( self, name, depth, maxdepth, maxlen, fn ):
        l = len( self._tags )
        indent = "    "*depth
        if self._at == ArrayType.LIST:
            line = "{}TAG_List{}: {} [".format( indent, name, _tls( l, self._lt ) )
            close = "]"
            label = lambda i, t: "({:d})".format( i )
        else:
            line = "{}TAG_Compound{}: {:d} entr{} {{".format( indent, name, l, "ies" if l != 1 else "y" )
            close = "}"
            label = lambda i, t: "(\"{}\")".format( t.name )

        if l == 0:
            fn( line + close )
        elif depth < maxdepth and maxlen != 0:
            fn( line )
            depth = depth + 1
            for i, t in enumerate( itertools.islice( self._tags, maxlen if maxlen < l else None ) ):
                t._p( label( i, t ), depth, maxdepth, maxlen, fn )
            if maxlen < l:
                fn( indent + "    ..." )
            fn( indent + close )
        else:
            fn( line + " ... " + close )
