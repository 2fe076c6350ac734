import math
import unittest

from nbtree import (
    Single, Array, ArrayType, Qualifier, Byte, Short, Int, Long, Float, Double, ByteArray, String, IntArray,
    TAG_END, TAG_BYTE, TAG_SHORT, TAG_INT, TAG_STRING, TAG_BYTE_ARRAY, TAG_LIST, TAG_COMPOUND,
    ConversionError, TypeMismatchError, OutOfBoundsError, WrongTagError, IterationInProgressError
)

def makeCompound():
    root = Array( "root" )
    root.addTag( Single( "a", Int( 1 ) ) )
    root.addTag( Single( "b", String( "two" ) ) )
    root.addTag( Single( "a", Short( 3 ) ) )
    return root

class TestPayload( unittest.TestCase ):
    def test_bounds( self ):
        self.assertEqual( Byte( -128 ), -128 )
        self.assertEqual( Long( 9223372036854775807 ), 9223372036854775807 )
        for cls, value in ( ( Byte, 128 ), ( Short, -32769 ), ( Int, 2147483648 ), ( Long, -9223372036854775809 ) ):
            with self.assertRaises( OutOfBoundsError ):
                cls( value )
    def test_string_limit( self ):
        self.assertEqual( len( String( "x" * 65535 ) ), 65535 )
        with self.assertRaises( OutOfBoundsError ):
            String( "é" * 32768 )
    def test_bytearray( self ):
        self.assertEqual( ByteArray( b"\x00\xff\x7f" ).tolist(), [ 0, -1, 127 ] )
        self.assertEqual( ByteArray( memoryview( b"\x80" ) ).tolist(), [ -128 ] )
        self.assertEqual( ByteArray( ( 1, -2 ) ).tolist(), [ 1, -2 ] )
    def test_repr( self ):
        self.assertEqual( repr( Int( 5 ) ), "Int(5)" )
        self.assertEqual( repr( String( "hi" ) ), "String('hi')" )
        self.assertEqual( repr( IntArray() ), "IntArray()" )

class TestSingle( unittest.TestCase ):
    def test_construct( self ):
        s = Single( "health", Short( 20 ) )
        self.assertEqual( s.name, "health" )
        self.assertEqual( s.payload, 20 )
        self.assertIsInstance( s.payload, Short )
        self.assertEqual( s.tagType, TAG_SHORT )
        self.assertEqual( s.qualifier, Qualifier.SINGLE )
    def test_conversion( self ):
        self.assertEqual( Single( "s", "text" ).tagType, TAG_STRING )
        self.assertEqual( Single( "b", b"\x01" ).tagType, TAG_BYTE_ARRAY )
        self.assertEqual( Single( "b", bytearray( 2 ) ).tagType, TAG_BYTE_ARRAY )
        flag = Single( "flag", True )
        self.assertEqual( flag.tagType, TAG_BYTE )
        self.assertEqual( flag.payload, 1 )
        for value in ( 5, 1.5, None, [ 1 ] ):
            with self.assertRaises( ConversionError ):
                Single( "x", value )
    def test_name_must_be_str( self ):
        with self.assertRaises( TypeError ):
            Single( 5, Int( 5 ) )
    def test_type_lock( self ):
        s = Single( "health", Short( 20 ) )
        s.setPayload( Short( 18 ) )
        self.assertEqual( s.payload, 18 )

        with self.assertRaises( TypeMismatchError ):
            s.setPayload( Int( 18 ) )
        self.assertEqual( s.payload, 18 )
        self.assertIsInstance( s.payload, Short )

        #Plain ints aren't coerced
        with self.assertRaises( TypeMismatchError ):
            s.payload = 7
        self.assertEqual( s.payload, 18 )
        self.assertEqual( s.tagType, TAG_SHORT )
    def test_set_converted( self ):
        s = Single( "name", String( "Jeff" ) )
        s.payload = "Steve"
        self.assertIsInstance( s.payload, String )
        self.assertEqual( s.payload, "Steve" )
        with self.assertRaises( TypeMismatchError ):
            s.payload = b"Steve"
    def test_equality( self ):
        self.assertEqual( Single( "x", Int( 1 ) ), Single( "x", Int( 1 ) ) )
        self.assertNotEqual( Single( "x", Int( 1 ) ), Single( "x", Long( 1 ) ) )
        self.assertNotEqual( Single( "x", Int( 1 ) ), Single( "y", Int( 1 ) ) )
        self.assertEqual( Single( "n", Double( math.nan ) ), Single( "n", Double( math.nan ) ) )
        self.assertEqual( Single( "f", Float( 0.5 ) ), Single( "f", Float( 0.5 ) ) )

class TestArray( unittest.TestCase ):
    def test_compound( self ):
        root = makeCompound()
        self.assertEqual( root.arrayType, ArrayType.COMPOUND )
        self.assertEqual( root.listType, TAG_END )
        self.assertEqual( root.tagType, TAG_COMPOUND )
        self.assertEqual( root.qualifier, Qualifier.ARRAY )
        self.assertEqual( root.size(), 3 )
        self.assertEqual( len( root ), 3 )
        with self.assertRaises( ValueError ):
            Array( "bad", ArrayType.COMPOUND, TAG_INT )
    def test_lookup( self ):
        root = makeCompound()
        #Duplicate names: the first match wins
        self.assertEqual( root.tag( "a" ).payload, 1 )
        self.assertIsNone( root.tag( "missing" ) )
        self.assertEqual( root.tag( 2 ).payload, 3 )
        self.assertIs( root["b"], root.tag( 1 ) )
        self.assertTrue( "b" in root )
        self.assertFalse( "c" in root )
        with self.assertRaises( KeyError ):
            root["missing"]
        with self.assertRaises( IndexError ):
            root.tag( 3 )
        with self.assertRaises( IndexError ):
            root.tag( -1 )
        with self.assertRaises( TypeError ):
            root.tag( True )
        with self.assertRaises( TypeError ):
            root.tag( 1.0 )
    def test_list_type( self ):
        l = Array( "l", ArrayType.LIST )
        self.assertEqual( l.listType, TAG_END )
        self.assertEqual( l.tagType, TAG_LIST )
        l.addTag( Single( "", Int( 1 ) ) )
        self.assertEqual( l.listType, TAG_INT )
        with self.assertRaises( WrongTagError ):
            l.addTag( Single( "", Short( 1 ) ) )
        self.assertEqual( l.size(), 1 )

        typed = Array( "t", ArrayType.LIST, TAG_STRING )
        with self.assertRaises( WrongTagError ):
            typed.addTag( Single( "", Int( 1 ) ) )
        typed.addTag( Single( "", "ok" ) )
        self.assertEqual( typed.size(), 1 )
    def test_add_invalid( self ):
        root = Array()
        with self.assertRaises( TypeError ):
            root.addTag( Int( 5 ) )
        with self.assertRaises( ValueError ):
            root.addTag( root )
    def test_remove( self ):
        root = makeCompound()
        b = root.tag( "b" )
        self.assertTrue( root.removeTag( b ) )
        self.assertFalse( root.removeTag( b ) )
        #Removal is by identity, not equality
        self.assertFalse( root.removeTag( Single( "a", Int( 1 ) ) ) )
        self.assertEqual( [ t.name for t in root ], [ "a", "a" ] )
    def test_traversal( self ):
        root = makeCompound()
        seen = []
        t = root.nextTag()
        while t is not None:
            seen.append( t.name )
            t = root.nextTag()
        self.assertEqual( seen, [ "a", "b", "a" ] )
        #The cursor is back at the start
        self.assertIs( root.nextTag(), root.tag( 0 ) )
    def test_mutation_during_traversal( self ):
        root = makeCompound()
        root.nextTag()
        with self.assertRaises( IterationInProgressError ):
            root.addTag( Single( "c", Int( 4 ) ) )
        with self.assertRaises( IterationInProgressError ):
            root.removeTag( root.tag( 0 ) )
        self.assertEqual( root.size(), 3 )

        root.seek()
        root.addTag( Single( "c", Int( 4 ) ) )
        self.assertEqual( root.size(), 4 )
        self.assertIs( root.nextTag(), root.tag( 0 ) )
    def test_mutation_during_iteration( self ):
        root = makeCompound()
        with self.assertRaises( IterationInProgressError ):
            for t in root:
                root.addTag( Single( "c", Int( 4 ) ) )
    def test_seek( self ):
        root = makeCompound()
        root.seek( 2 )
        self.assertIs( root.nextTag(), root.tag( 2 ) )
        self.assertIsNone( root.nextTag() )
        with self.assertRaises( IndexError ):
            root.seek( 4 )
    def test_equality( self ):
        self.assertEqual( makeCompound(), makeCompound() )
        other = makeCompound()
        other.tag( 0 ).payload = Int( 9 )
        self.assertNotEqual( makeCompound(), other )
    def test_sprint( self ):
        root = Array( "root" )
        root.addTag( Single( "a", Int( 1 ) ) )
        l = Array( "l", ArrayType.LIST )
        l.addTag( Single( "", Short( 7 ) ) )
        root.addTag( l )
        root.addTag( Array( "empty" ) )
        self.assertEqual(
            root.sprint(),
            "TAG_Compound(\"root\"): 3 entries {\n"
            "    TAG_Int(\"a\"): 1\n"
            "    TAG_List(\"l\"): 1 TAG_Short [\n"
            "        TAG_Short(0): 7\n"
            "    ]\n"
            "    TAG_Compound(\"empty\"): 0 entries {}\n"
            "}\n"
        )
        self.assertEqual( root.sprint( maxdepth=0 ), "TAG_Compound(\"root\"): 3 entries { ... }\n" )
        self.assertEqual( root.sprint( maxlen=1 ), "TAG_Compound(\"root\"): 3 entries {\n    TAG_Int(\"a\"): 1\n    ...\n}\n" )

if __name__ == "__main__":
    unittest.main()
