'''
   Copyright (c) 2018 Yogesh Khatri

   This file is part of bm_apt (Bookmark Artifact Parsing Tool).
   Usage or distribution of this software/code is subject to the
   terms of the MIT License.

   bm_apt.py
   ---------
   This is intended for situations where you don't have a full
   disk/volume image, but just have login items or background items
   plists to examine. This script allows a single plugin to run and
   process multiple artifact files.

   For usage information, run:
     python bm_apt.py -h
'''

import argparse
import logging
import os
import sqlite3
import sys
import textwrap
import time
import xlsxwriter

from plugin import *
from plugins.helpers.writer import *

__VERSION = "1.0.dev"
__PROGRAMNAME = "Bookmark Artifact Parsing Tool - Artifact Only mode"
__EMAIL = "yogesh@swiftforensics.com"

LOG_LEVELS = { 'INFO': logging.INFO, 'DEBUG': logging.DEBUG, 'WARNING': logging.WARNING,
               'ERROR': logging.ERROR, 'CRITICAL': logging.CRITICAL }

def GetPlugin(plugins, name):
    for plugin in plugins:
        if plugin.__Plugin_Name == name: return plugin
    return None

def CreateArgParser(plugins):
    plugins_info = f"The following {len(plugins)} plugins are available:"
    for plugin in plugins:
        plugins_info += "\n    {:<20}{}".format(plugin.__Plugin_Name, textwrap.fill(plugin.__Plugin_Description, subsequent_indent=' '*24, initial_indent=' '*24, width=80)[24:])

    arg_parser = argparse.ArgumentParser(description='bm_apt extracts bookmark data from macOS login items artifacts\n'\
                                                     f'You are running {__PROGRAMNAME} version {__VERSION}\n\n'\
                                                     'Note: The default output is sqlite, no need to specify it',
                                        epilog=plugins_info, formatter_class=argparse.RawTextHelpFormatter)
    arg_parser.add_argument('-i', '--input_path', nargs='+', help='Path to input file(s)') # Not optional !
    arg_parser.add_argument('-o', '--output_path', help='Path where output files will be created') # Not optional !
    arg_parser.add_argument('-x', '--xlsx', action="store_true", help='Save output in excel spreadsheet(s)')
    arg_parser.add_argument('-c', '--csv', action="store_true", help='Save output as CSV files')
    arg_parser.add_argument('-t', '--tsv', action="store_true", help='Save output as TSV files (tab separated)')
    arg_parser.add_argument('-j', '--jsonl', action="store_true", help='Save output as JSONL files')
    arg_parser.add_argument('-l', '--log_level', help='Log levels: INFO, DEBUG, WARNING, ERROR, CRITICAL (Default is INFO)')
    arg_parser.add_argument('plugin', help="Plugin to run")
    arg_parser.add_argument('--plugin_help', action="store_true", help="Plugin usage info")
    return arg_parser

def main(argv=None):
    plugins = []
    plugin_count = ImportPlugins(plugins, 'ARTIFACTONLY')
    if plugin_count == 0:
        sys.exit ("No plugins could be added ! Exiting..")

    args = CreateArgParser(plugins).parse_args(argv)

    plugin_to_run = args.plugin.upper()  # convert plugin name entered by user to uppercase
    plugin = GetPlugin(plugins, plugin_to_run)
    if plugin is None:
        sys.exit("Exiting -> Plugin '" + args.plugin + "' is not a valid plugin name.")
    if args.plugin_help:
        print("\nHelp for Module {} ({})\n".format(plugin.__Plugin_Name, plugin.__Plugin_Friendly_Name))
        print("-"*50 + "\n{}\n".format( textwrap.fill(plugin.__Plugin_ArtifactOnly_Usage, width=80, drop_whitespace=False)))
        sys.exit()

    if args.output_path:
        if (os.name != 'nt'):
            if args.output_path.startswith('~/') or args.output_path == '~': # for linux/mac, translate ~ to user profile folder
                args.output_path = os.path.expanduser(args.output_path)
        print ("Output path was : {}".format(args.output_path))
        if not CheckOutputPath(args.output_path):
            sys.exit("Exiting -> Output path not valid!")
    else:
        sys.exit("Exiting -> No output_path provided, the -o option is mandatory!")

    if args.input_path:
        for in_file in args.input_path:
            if not os.path.exists(in_file):
                sys.exit("Exiting -> Input path '{}' does not exist!".format(in_file))
    else:
        sys.exit("Exiting -> No input file provided, the -i option is mandatory. Please provide a file to process!")

    if args.log_level:
        log_level = LOG_LEVELS.get(args.log_level.upper(), None)
        if log_level is None:
            sys.exit("Exiting -> Invalid input type for log level. Valid values are INFO, DEBUG, WARNING, ERROR, CRITICAL")
    else:
        log_level = logging.INFO
    log = CreateLogger(os.path.join(args.output_path, "Log." + str(time.strftime("%Y%m%d-%H%M%S")) + ".txt"), log_level, log_level) # Create logging infrastructure
    log.setLevel(log_level)
    log.info("Started {}, version {}".format(__PROGRAMNAME, __VERSION))
    LogPlatformInfo(log)
    log.debug(' '.join(sys.argv))

    output_params = OutputParams()
    output_params.output_path = args.output_path

    try:
        log.debug("Trying to create db @ " + os.path.join(output_params.output_path, "bm_apt.db"))
        output_params.output_db_path = SqliteWriter.CreateSqliteDb(os.path.join(output_params.output_path, "bm_apt.db"))
        output_params.write_sql = True
    except (OSError, sqlite3.Error):
        log.exception('Exception occurred when tried to create Sqlite db')
        sys.exit('Exiting -> Cannot create sqlite db!')

    if args.xlsx:
        xlsx_path = os.path.join(output_params.output_path, "bm_apt.xlsx")
        try:
            output_params.xlsx_writer = ExcelWriter()
            log.debug("Trying to create xlsx file @ " + xlsx_path)
            output_params.xlsx_writer.CreateXlsxFile(xlsx_path)
            output_params.write_xlsx = True
        except (OSError, xlsxwriter.exceptions.XlsxWriterException):
            log.info('XLSX file could not be created at : ' + xlsx_path)
            log.exception('Exception occurred when trying to create XLSX file')

    output_params.write_csv = args.csv
    output_params.write_tsv = args.tsv
    output_params.write_jsonl = args.jsonl

    # At this point, all looks good, lets process the input file
    time_processing_started = time.time()
    log.info("-"*50)
    log.info("Running plugin " + plugin_to_run)
    log.info("-"*50)
    try:
        plugin.Plugin_Start_Standalone(args.input_path, output_params)
    except Exception:
        log.exception ("An exception occurred while running plugin - " + plugin_to_run)

    log.info("-"*50)

    if output_params.write_xlsx:
        output_params.xlsx_writer.CommitAndCloseFile()

    run_time = time.time() - time_processing_started
    log.info("Finished in time = {}".format(time.strftime('%H:%M:%S', time.gmtime(run_time))))
    log.info("Review the Log file and report any ERRORs or EXCEPTIONS to the developers")

if __name__ == '__main__':
    main()
