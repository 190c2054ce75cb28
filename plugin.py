'''
   Copyright (c) 2017 Yogesh Khatri

   This file is part of bm_apt (Bookmark Artifact Parsing Tool).
   Usage or distribution of this software/code is subject to the
   terms of the MIT License.

   plugin.py
   ---------
   This module handles plugin operations, importing them, checking for
   errors. There are also some common functions used by the command
   line front end, like logger creation and output path checks.
'''
import logging
import os
import platform
import sys
import traceback

def ImportPlugins(plugins, mode):
    ''' Imports plugins contained in the 'plugins' folder.
        Args:
            mode: 'ARTIFACTONLY' is the only mode right now
        Returns count of plugins added to 'plugins' list
    '''
    base_path = os.path.dirname(os.path.abspath(__file__))
    plugin_path = os.path.join(base_path, "plugins")
    if plugin_path not in sys.path:
        sys.path.append(plugin_path)

    try:
        dir_list = sorted(os.listdir(plugin_path))
    except OSError as ex:
        print ("Does plugin directory exist?\n Exception:\n" + str(ex))
        return 0
    for filename in dir_list:
        if filename.endswith(".py") and not filename.startswith("_"):
            try:
                plugin = __import__(filename.replace(".py", ""))
                if not IsPluginValidForMode(plugin, mode):
                    continue
                if IsValidPlugin(plugin):
                    plugins.append(plugin)
                else:
                    print ("Failed to import plugin - {}\nPlugin is missing a required variable".format(filename))
            except Exception as ie: #ImportError, SyntaxError, ..
                exc_type = sys.exc_info()[0]
                print ("!!Error in plugin '" + filename + "' - " + str(exc_type.__name__) + " - " + str(ie))
                print ("Failed to import plugin - {} ! Check code!".format(filename))
    plugins.sort(key=lambda plugin: plugin.__Plugin_Name) # So plugins are in same order regardless of platform!
    return len(plugins)

def IsValidPlugin(plugin):
    '''Check to see if required plugin variables are present'''
    for attr in ['__Plugin_Name', '__Plugin_Friendly_Name', '__Plugin_Version', '__Plugin_Description', \
                '__Plugin_Author', '__Plugin_Author_Email', '__Plugin_Modes', '__Plugin_ArtifactOnly_Usage']:
        if not hasattr(plugin, attr):
            print("Required variable '" + attr + "' is missing, check plugin code!")
            return False
    return True

def IsPluginValidForMode(plugin, mode):
    '''Check to see if a plugin can run on specified mode'''
    if hasattr(plugin, '__Plugin_Modes'):
        val = getattr(plugin, '__Plugin_Modes').upper().split(",")
        return mode.upper() in val
    return False

def CheckOutputPath(output_path):
    '''Checks validity of outputpath, if it does not exist, it creates it'''
    ret = False
    if os.path.isdir(output_path): # Check output path provided
        ret = True
    elif os.path.isfile(output_path):
        print("Error: There is already a file existing by that name. Cannot create folder : " + output_path)
    else: # Try creating folder
        try:
            os.makedirs(output_path)
            ret = True
        except OSError as ex:
            print("Error: Cannot create output folder : " + output_path + "\nError Details: " + str(ex))
    return ret

def CreateLogger(log_file_path, log_file_level=logging.DEBUG, log_console_level=logging.INFO):
    '''Creates the logging classes for both console & file'''
    try:
        # Log file setting
        logger = logging.getLogger('MAIN')
        log_file_handler = logging.FileHandler(log_file_path, encoding='utf8')
        log_file_format  = logging.Formatter('%(asctime)s|%(name)s|%(levelname)s|%(message)s', datefmt='%Y-%m-%d %H:%M:%S')
        log_file_handler.setFormatter(log_file_format)
        log_file_handler.setLevel(log_file_level)
        logger.addHandler(log_file_handler)

        # console handler
        log_console_handler = logging.StreamHandler()
        log_console_handler.setLevel(log_console_level)
        log_console_format  = logging.Formatter('%(name)s-%(levelname)s-%(message)s')
        log_console_handler.setFormatter(log_console_format)
        logger.addHandler(log_console_handler)
    except OSError:
        print ("Error while trying to create log file\nError Details:\n")
        traceback.print_exc()
        sys.exit ("Program aborted..could not create log file!")
    return logger

def LogPlatformInfo(log):
    '''Log python version and the OS this is running on'''
    log.info('Python version = {}'.format(sys.version))
    system = platform.system()
    if system == 'Darwin':
        ver = platform.mac_ver()
        log.info(f"Running on macOS {ver[0]}, Architecture {ver[2]}")
    elif system == 'Windows':
        ver = platform.win32_ver()
        log.info(f"Running on Windows {ver[0]}, Version={ver[1]}")
    else:
        log.info(f"Running on {system}, uname info={platform.uname()}")
