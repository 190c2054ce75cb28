'''
   Copyright (c) 2017 Yogesh Khatri

   This file is part of bm_apt (Bookmark Artifact Parsing Tool).
   Usage or distribution of this software/code is subject to the
   terms of the MIT License.

'''

import hashlib
import logging
import os
import plistlib

from xml.parsers.expat import ExpatError

from plugins.helpers.common import CommonFunctions
from plugins.helpers.loginitems_plist import *
from plugins.helpers.writer import *

__Plugin_Name = "LOGINITEMS" # Cannot have spaces, and must be all caps!
__Plugin_Friendly_Name = "Login items bookmarks"
__Plugin_Version = "1.0"
__Plugin_Description = "Extracts raw bookmark data from login items & background items (btm) plists"
__Plugin_Author = "Yogesh Khatri"
__Plugin_Author_Email = "yogesh@swiftforensics.com"
__Plugin_Modes = "ARTIFACTONLY"
__Plugin_Standalone = True
__Plugin_ArtifactOnly_Usage = "Provide backgrounditems.btm or BackgroundItems-v*.btm files found at "\
                              "~/Library/Application Support/com.apple.backgroundtaskmanagementagent/ and "\
                              "/private/var/db/com.apple.backgroundtaskmanagement/ . App bundle login items "\
                              "plists (loginitems.<UID>.plist) may also be provided, these are listed as is."

log = logging.getLogger('MAIN.' + __Plugin_Name) # Do not rename or remove this ! This is the logger object

#---- Do not change the variable names in above section ----#

class BookmarkItem:
    def __init__(self, index, data, btm_version, source):
        self.index = index
        self.size = len(data)
        self.sha256 = hashlib.sha256(data).hexdigest()
        self.data = data
        self.btm_version = btm_version
        self.source = source

def get_btm_version(btm_path):
    '''Returns version from the deserialized btm archive, or empty string if not found'''
    success, plist, error = CommonFunctions.ReadPlist(btm_path, deserialize=True)
    if not success:
        log.debug('Could not deserialize {} to get version - {}'.format(btm_path, error))
        return ''
    # >= macOS 13, root is a list
    if isinstance(plist, list) and len(plist) > 0:
        plist = plist[0]
    if isinstance(plist, dict):
        return plist.get('version', '')
    return ''

def process_bookmarks_file(input_path, bookmark_items):
    '''Gets bookmarks from a btm (or other NSKeyedArchiver) plist, returns True if file could be read'''
    try:
        bookmarks = get_bookmarks(input_path, log)
    except UnexpectedTypeError as ex:
        log.error('Unsupported plist layout in {} - {}'.format(input_path, str(ex)))
        return False
    except (OSError, ValueError, ExpatError, plistlib.InvalidFileException) as ex:
        log.error('Failed to read plist {} - {}'.format(input_path, str(ex)))
        return False

    log.info('Found {} bookmark(s) in {}'.format(len(bookmarks), input_path))
    if bookmarks:
        btm_version = get_btm_version(input_path)
        if btm_version != '':
            log.debug('BTM version is {}'.format(btm_version))
        for index, data in enumerate(bookmarks):
            bookmark_items.append(BookmarkItem(index, data, btm_version, input_path))
    return True

def process_app_loginitems(input_path, login_item_entries):
    '''Lists all top level entries of an App bundle loginitems.<UID>.plist'''
    try:
        login_items = read_login_items(input_path)
    except (OSError, ValueError, ExpatError, plistlib.InvalidFileException) as ex:
        log.error('Failed to read plist {} - {}'.format(input_path, str(ex)))
        return False

    for key, value in login_items.items():
        if isinstance(value, (bytes, bytearray)):
            login_item_entries.append([key, '', bytes(value), input_path])
        else:
            login_item_entries.append([key, str(value), b'', input_path])
    log.info('Found {} login item entries in {}'.format(len(login_items), input_path))
    return True

def IsAppLoginItemsPlist(path):
    name = os.path.basename(path).lower()
    return name.startswith('loginitems.') and name.endswith('.plist')

def print_bookmarks(bookmark_items, output_params, source_path):
    bookmark_info = [ ('Index',DataType.INTEGER),('Size',DataType.INTEGER),('SHA256',DataType.TEXT),
                      ('BookmarkData',DataType.BLOB),('BTM_Version',DataType.INTEGER),('Source',DataType.TEXT) ]
    data_list = []
    log.info("Found {} login item bookmark(s)".format(len(bookmark_items)))
    for item in bookmark_items:
        data_list.append([item.index, item.size, item.sha256, item.data, item.btm_version, item.source])
    WriteList("login items bookmarks", "LoginItemsBookmarks", data_list, bookmark_info, output_params, source_path)

def print_login_item_entries(login_item_entries, output_params, source_path):
    entry_info = [ ('Key',DataType.TEXT),('Value',DataType.TEXT),('Data',DataType.BLOB),('Source',DataType.TEXT) ]
    WriteList("login items entries", "LoginItemsEntries", login_item_entries, entry_info, output_params, source_path)

def Plugin_Start_Standalone(input_files_list, output_params):
    '''Main entry point function when used on single artifacts (bm_apt), not on a full disk image'''
    log.info("Module Started as standalone")
    bookmark_items = []
    login_item_entries = []
    for input_path in input_files_list:
        log.debug("Input path passed was: " + input_path)
        if IsAppLoginItemsPlist(input_path):
            process_app_loginitems(input_path, login_item_entries)
        else:
            if not input_path.lower().endswith('.btm'):
                log.info('File {} does not end in ".btm", trying to read it as a background items plist'.format(input_path))
            process_bookmarks_file(input_path, bookmark_items)

    if bookmark_items:
        print_bookmarks(bookmark_items, output_params, '')
    if login_item_entries:
        print_login_item_entries(login_item_entries, output_params, '')
    if not (bookmark_items or login_item_entries):
        log.info('No login items artifacts found in {}'.format(', '.join(input_files_list)))
