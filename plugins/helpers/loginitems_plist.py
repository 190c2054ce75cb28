'''
   Copyright (c) 2017 Yogesh Khatri

   This file is part of bm_apt (Bookmark Artifact Parsing Tool).
   Usage or distribution of this software/code is subject to the
   terms of the MIT License.

   loginitems_plist.py
   -------------------
   Locates the raw bookmark blobs stored in login items and background
   items plists (backgrounditems.btm, BackgroundItems-v*.btm). These are
   NSKeyedArchiver plists, the bookmarks are Data objects somewhere in the
   top level '$objects' array. The blobs are returned as is, they are
   not parsed here.
'''

import logging

from enum import IntEnum
from plugins.helpers.common import CommonFunctions

log = logging.getLogger('MAIN.HELPERS.LOGINITEMS')

MIN_BOOKMARK_SIZE = 48 # Bookmark header is 48 bytes

class PlistType(IntEnum):
    DICTIONARY = 1
    ARRAY      = 2
    DATA       = 3
    OTHER      = 4 # strings, numbers, dates, bools, UIDs

class UnexpectedTypeError(ValueError):
    '''Raised when a plist object is not of the type needed to find bookmarks'''
    def __init__(self, expected, actual):
        self.expected = expected
        self.actual = actual
        super().__init__("Incorrect plist type. Expected {}. Got: {}".format(expected, actual))

def GetPlistType(value):
    '''Returns the PlistType of a value from a loaded plist'''
    if isinstance(value, dict):
        return PlistType.DICTIONARY
    elif isinstance(value, list):
        return PlistType.ARRAY
    elif isinstance(value, (bytes, bytearray, memoryview)):
        return PlistType.DATA
    return PlistType.OTHER

def GetPlistTypeName(value):
    '''Returns name of the plist type of value, used in UnexpectedTypeError'''
    plist_type = GetPlistType(value)
    if plist_type == PlistType.OTHER:
        return type(value).__name__
    return plist_type.name.lower()

def _get_data(value):
    '''Returns bytes of a DATA value, or None if they can't be read'''
    try:
        return bytes(value)
    except (TypeError, ValueError): # released memoryview, ..
        return None

def extract_bookmarks(root, logger=None):
    '''
       Get a list of bookmark blobs (bytes) from a loaded plist.
       Data found directly in the '$objects' array is always taken, Data
       inside a dictionary in that array is only taken if it is at least
       MIN_BOOKMARK_SIZE bytes long.
       Returns empty list if there is no '$objects'.
       Raises UnexpectedTypeError if '$objects' is not an array.
    '''
    if logger is None:
        logger = log
    if GetPlistType(root) != PlistType.DICTIONARY:
        raise UnexpectedTypeError('dictionary', GetPlistTypeName(root))

    objects = root.get('$objects', None)
    if objects is None:
        logger.debug('No $objects in plist, no bookmarks to get')
        return []
    if GetPlistType(objects) != PlistType.ARRAY:
        raise UnexpectedTypeError('array', GetPlistTypeName(objects))

    bookmarks = []
    for item in objects:
        item_type = GetPlistType(item)
        if item_type == PlistType.DATA:
            data = _get_data(item)
            if data is None:
                logger.warning('No plist data')
                continue
            bookmarks.append(data)
        elif item_type == PlistType.DICTIONARY:
            for value in item.values():
                if GetPlistType(value) != PlistType.DATA:
                    continue
                data = _get_data(value)
                if data is None:
                    logger.warning('No plist data in dictionary')
                    continue
                if len(data) < MIN_BOOKMARK_SIZE:
                    continue # too small to be a bookmark
                bookmarks.append(data)
        else:
            continue # other types are not bookmarks
    return bookmarks

def get_bookmarks(path, logger=None):
    '''
       Read plist at path and get list of bookmark blobs in it.
       Errors from reading the plist are not handled here.
    '''
    plist = CommonFunctions.LoadPlist(path)
    return extract_bookmarks(plist, logger)

def read_login_items(path):
    '''
       Read a login items plist found in App bundles (loginitems.UID.plist)
       and return its dictionary as is.
    '''
    plist = CommonFunctions.LoadPlist(path)
    if GetPlistType(plist) != PlistType.DICTIONARY:
        raise UnexpectedTypeError('dictionary', GetPlistTypeName(plist))
    return plist
