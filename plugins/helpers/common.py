'''
   Copyright (c) 2017 Yogesh Khatri

   This file is part of bm_apt (Bookmark Artifact Parsing Tool).
   Usage or distribution of this software/code is subject to the
   terms of the MIT License.

'''

import logging
import nska_deserialize as nd
import os
import plistlib
import re
from sqlite3 import Error as sqlite3Error
from xml.parsers.expat import ExpatError

log = logging.getLogger('MAIN.HELPERS.COMMON')

class CommonFunctions:

    @staticmethod
    def GetNextAvailableFileName(filepath):
        '''
        Checks for existing file and returns full path with next available file name
        by appending file name with a number. Ex: file01.csv
        '''
        if os.path.exists(filepath):
            split = os.path.splitext(filepath)
            filepath_without_ext = split[0]
            ext = split[1]
            index = 1
            fullpath = filepath_without_ext + '{0:02d}'.format(index) + ext
            while (os.path.exists(fullpath)):
                index += 1
                fullpath = filepath_without_ext + '{0:02d}'.format(index) + ext
            filepath = fullpath
        return filepath

    @staticmethod
    def TableExists(db_conn, table_name):
        '''Checks if a table with specified name exists in an sqlite db'''
        try:
            cursor = db_conn.execute("SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table_name,))
            for row in cursor:
                return True
        except sqlite3Error as ex:
            log.error ("In TableExists({}). Failed to list tables of db. Error Details:{}".format(table_name, str(ex)) )
        return False

    @staticmethod
    def replace_all_hex_int_with_int(xml_text):
        '''
            Returns string replacing all instances of hex integers
            in xml to their decimal equivalent
            like \\<integer>0x55\\</integer>
            with \\<integer>85\\</integer>

            Exceptions: ValueError (for invalid int conversions)
        '''
        pattern = re.compile("<integer>0x[0-9a-fA-F]*</integer>")
        search_from = 0
        match = pattern.search(xml_text, search_from)
        while match:
            hex_int = xml_text[match.start() + 11:match.end()-10]
            dec_int = str(int(hex_int, 16))

            xml_text = xml_text[:match.start() + 9] + dec_int + xml_text[match.end()-10:]
            search_from = match.start() + 9 + len(dec_int) + 10
            match = pattern.search(xml_text, search_from)
        return xml_text

    @staticmethod
    def LoadPlist(path_or_file):
        '''
            Read a binary or xml plist and return the loaded object.
            Unlike ReadPlist(), errors are not caught here, expect
            OSError, plistlib.InvalidFileException, ValueError or ExpatError.
        '''
        if isinstance(path_or_file, (str, os.PathLike)):
            with open(path_or_file, 'rb') as f:
                return CommonFunctions._LoadPlistFromFile(f)
        return CommonFunctions._LoadPlistFromFile(path_or_file)

    @staticmethod
    def _LoadPlistFromFile(f):
        try:
            return plistlib.load(f)
        except (plistlib.InvalidFileException, ValueError, ExpatError):
            # Check for XML format
            f.seek(0)
            file_start_bytes = f.read(10)
            if file_start_bytes.find(b'?xml') <= 0:
                raise
            # Perhaps this is manually edited or incorrectly formatted
            # that has left whitespaces at the start of file before <?xml tag
            # Or it's a bigSur (11.0) plist with hex integers
            f.seek(0)
            data = f.read().decode('utf8', 'ignore')
            data = CommonFunctions.replace_all_hex_int_with_int(data) # Fix for BigSur plists with hex ints
            data = data.lstrip(" \r\n\t").encode('utf8', 'backslashreplace')
            return plistlib.loads(data, fmt=plistlib.FMT_XML)

    @staticmethod
    def ReadPlist(path_or_file, deserialize=False):
        '''
            Safely open and read a plist.
            Returns a tuple (True/False, plist/None, "error_message")
        '''
        error = ''
        path = ''
        plist = None
        f = None
        if isinstance(path_or_file, (str, os.PathLike)):
            path = str(path_or_file)
            try:
                f = open(path, 'rb')
            except OSError as ex:
                error = 'Could not open file, Error was : ' + str(ex)
        else: # its a file
            f = path_or_file

        if f:
            if deserialize:
                try:
                    plist = nd.deserialize_plist(f)
                    f.close()
                    return (True, plist, '')
                except (nd.DeserializeError, nd.biplist.NotBinaryPlistException, nd.biplist.InvalidPlistException,
                        plistlib.InvalidFileException, nd.ccl_bplist.BplistError, ValueError, TypeError,
                        KeyError, IndexError, OSError, OverflowError) as ex:
                    error = 'Error deserializing plist: ' + path + " Error was : " + str(ex)
                    f.close()
                    return (False, plist, error)
            else:
                try:
                    plist = CommonFunctions._LoadPlistFromFile(f)
                    return (True, plist, '')
                except (plistlib.InvalidFileException, ValueError, ExpatError) as ex:
                    error = 'Could not read plist: ' + path + " Error was : " + str(ex)
                finally:
                    f.close()
        return (False, None, error)
