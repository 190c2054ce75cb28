'''
   Copyright (c) 2017 Yogesh Khatri

   This file is part of bm_apt (Bookmark Artifact Parsing Tool).
   Usage or distribution of this software/code is subject to the
   terms of the MIT License.

'''

import binascii
import collections
import csv
import jsonlines
import logging
import os
import sqlite3
import xlsxwriter

from enum import IntEnum
from plugins.helpers.common import CommonFunctions

log = logging.getLogger('MAIN.HELPERS.WRITER')

class DataType(IntEnum):
    INTEGER = 1 # Whole Numbers
    REAL    = 2 # Floating point numbers
    TEXT    = 3 # Strings and Text Dates
    BLOB    = 4 # Binary
    DATE    = 5 # datetime object, not a native SQLite type, will be stored as TEXT

class OutputParams:
    def __init__(self):
        self.output_path = ''
        self.write_csv = False
        self.write_tsv = False
        self.write_jsonl = False
        self.write_sql = False
        self.write_xlsx = False
        self.xlsx_writer = None
        self.output_db_path = ''

class DataWriter:

    def __init__(self, output_params, name, column_info, artifact_source=''):
        '''
        output_params is OutputParams object
        column_info is a list of tuples (or OrderedDict) that defines output column names and types
        column_info = [ ('Name1', DataType.TEXT), ('Name2', DataType.BLOB), ..]
        name is suggested name for either table name and/or file name
        artifact_source is the source of an artifact (full path to source file), only logged
        '''
        self.output_path = output_params.output_path
        self.name = name
        self.artifact_source = artifact_source
        self.row_count = 0
        self.csv_writer = None
        self.tsv_writer = None
        self.jsonl_writer = None
        self.xlsx_writer = None
        self.sql_writer = None

        if output_params.write_sql:
            self.sql_writer = SqliteWriter()
            self.sql_writer.OpenSqliteDb(output_params.output_db_path)
        if output_params.write_csv:
            self.csv_writer = CsvWriter()
            self.csv_writer.CreateCsvFile(os.path.join(self.output_path, name + ".csv"))
        if output_params.write_tsv:
            self.tsv_writer = CsvWriter(is_tsv=True)
            self.tsv_writer.CreateCsvFile(os.path.join(self.output_path, name + ".tsv"))
        if output_params.write_jsonl:
            self.jsonl_writer = JsonlWriter()
            self.jsonl_writer.CreateJsonlFile(os.path.join(self.output_path, name + ".jsonl"))
        if output_params.write_xlsx:
            self.xlsx_writer = output_params.xlsx_writer

        self.column_info = collections.OrderedDict(column_info)
        self.num_columns = len(self.column_info)
        self.blob_indexes = [index for index, data_type in enumerate(self.column_info.values()) if data_type == DataType.BLOB]
        if artifact_source:
            log.debug('Writing {} from source {}'.format(name, artifact_source))

    def FinishWrites(self):
        '''This must be called to properly close files'''
        if self.csv_writer: self.csv_writer.Cleanup()
        if self.tsv_writer: self.tsv_writer.Cleanup()
        if self.jsonl_writer: self.jsonl_writer.Cleanup()
        if self.sql_writer: self.sql_writer.CloseDb()

    def WriteHeaders(self):
        '''Writes Headings for csv/tsv/jsonl, creates Table for sqlite, creates Sheet for XLSX'''
        if self.csv_writer: self.csv_writer.WriteRow(self.column_info)
        if self.tsv_writer: self.tsv_writer.WriteRow(self.column_info)
        if self.jsonl_writer: self.jsonl_writer.AddHeaders(self.column_info)
        if self.sql_writer: self.sql_writer.CreateTable(self.column_info, self.name)
        if self.xlsx_writer:
            self.xlsx_writer.CreateSheet(self.name)
            self.xlsx_writer.AddHeaders(self.column_info)

    @staticmethod
    def BlobToHex(blob):
        '''Convert binary data to hex text'''
        s = ''
        if blob:
            s = binascii.hexlify(blob).decode("ascii").upper()
        return s

    def _ToList(self, row):
        if isinstance(row, dict):
            return [ row.get(col, '') for col in self.column_info ]
        elif isinstance(row, (list, tuple)):
            if len(row) != self.num_columns:
                raise ValueError('Count of data items in row does not match Number of columns!')
            return list(row)
        raise ValueError("WriteRows() can only handle list or dictionary, passed variable was " + str(type(row)))

    def WriteRow(self, row):
        '''Write a single row of data, 'row' can be either a list or dictionary'''
        self.WriteRows([row])

    def WriteRows(self, rows):
        '''Write multiple rows at once, 'rows' must be a 'list' of lists/dicts'''
        if len(rows) == 0: # Nothing to write!
            return
        rows = [self._ToList(row) for row in rows] # copies, original rows are not modified
        if self.row_count == 0: #Write Header row
            self.WriteHeaders()
        for row in rows:
            for index in self.blob_indexes:
                row[index] = bytes(row[index]) if row[index] else b''
        if self.sql_writer:
            self.sql_writer.WriteRows(rows)
        if self.csv_writer or self.tsv_writer or self.jsonl_writer or self.xlsx_writer:
            for row in rows:
                for index in self.blob_indexes:
                    row[index] = self.BlobToHex(row[index])
            if self.csv_writer: self.csv_writer.WriteRows(rows)
            if self.tsv_writer: self.tsv_writer.WriteRows(rows)
            if self.jsonl_writer: self.jsonl_writer.WriteRows(rows)
            if self.xlsx_writer: self.xlsx_writer.WriteRows(rows)
        self.row_count += len(rows)

class SqliteWriter:
    def __init__(self):
        self.filepath = ''
        self.conn = None
        self.table_name = ''
        self.executemany_query = ''

    def OpenSqliteDb(self, filepath):
        '''Open an existing db or create it'''
        self.filepath = filepath
        try:
            self.conn = sqlite3.connect(self.filepath)
        except (OSError, sqlite3.Error) as ex:
            log.error('Failed to open/create sqlite db at path {}'.format(filepath))
            log.exception('Error details')
            raise ex

    @staticmethod
    def CreateSqliteDb(filepath):
        #Plugins MUST NOT call this function.
        filepath = CommonFunctions.GetNextAvailableFileName(filepath)
        conn = sqlite3.connect(filepath)
        conn.close()
        return filepath

    def GetNextAvailableTableName(self, name):
        '''Get unused table name by appending _xx where xx=01-99'''
        index = 1
        new_name = name + '_{0:02d}'.format(index)
        while (CommonFunctions.TableExists(self.conn, new_name)):
            index += 1
            new_name = name + '_{0:02d}'.format(index)
        return new_name

    def _CraftCreateStatement(self, column_info):
        columns = ['"{}" {}'.format(k, v.name if v != DataType.DATE else 'TEXT') for k, v in column_info.items()]
        return 'CREATE TABLE "' + self.table_name + '" (' + ','.join(columns) + ')'

    def CreateTable(self, column_info, table_name):
        '''
           Creates table with given name, if table exists,
           a new name is selected (name_xx)
           - 'column_info' must be OrderedDict
        '''
        self.table_name = table_name
        if CommonFunctions.TableExists(self.conn, table_name):
            self.table_name = self.GetNextAvailableTableName(table_name)
            log.info('Table {} already exists, changing tablename to {}'.format(table_name, self.table_name))
        try:
            self.conn.execute(self._CraftCreateStatement(column_info))
            self.conn.commit()
        except sqlite3.Error as ex:
            log.exception("error creating table " + self.table_name)
            raise ex
        self.executemany_query = 'INSERT INTO "' + self.table_name + '" VALUES (?' + ',?'*(len(column_info) - 1) + ')'
        return self.table_name

    def WriteRows(self, rows):
        '''Write rows to the last created table, where rows is a list of 'tuple or list' (in order)'''
        try:
            self.conn.executemany(self.executemany_query, rows)
            self.conn.commit()
        except (sqlite3.Error, OverflowError) as ex:
            log.exception("error writing to table " + self.table_name)

    def CloseDb(self):
        if self.conn != None:
            self.conn.close()
            self.conn = None

class CsvWriter:
    def __init__(self, delete_empty_files=True, is_tsv=False):
        self.filepath = ''
        self.is_tsv = is_tsv
        self.codec = 'utf-16' if is_tsv else 'utf-8'
        self.pycsv_writer = None
        self.file_handle = None
        self.delete_empty_files = delete_empty_files

    def CreateCsvFile(self, filepath):
        '''
        Creates a csv/tsv file with suggested name,
        if name is not available, get the next available name
        eg: name01.csv or name02.csv or ..
        '''
        self.filepath = CommonFunctions.GetNextAvailableFileName(filepath)
        try:
            self.file_handle = open(self.filepath, 'w', encoding=self.codec, newline='')
            if not self.is_tsv:
                self.pycsv_writer = csv.writer(self.file_handle, delimiter=',', quotechar='"', quoting=csv.QUOTE_MINIMAL, dialect='excel')
        except (OSError, csv.Error) as ex:
            log.error('Failed to create {} file at path {}'.format('tsv' if self.is_tsv else 'csv', self.filepath))
            log.exception('Error details')
            raise ex

    @staticmethod
    def SanitizeForTsv(row):
        '''Remove \\r \\n \\t from each item to write'''
        return [str(item).replace('\r\n', ',').replace('\r', ',').replace('\n', ',').replace('\t', ' ') for item in row]

    def WriteRow(self, row):
        self.WriteRows([row])

    def WriteRows(self, rows):
        try:
            if self.is_tsv:
                for row in rows:
                    self.file_handle.write("\t".join(self.SanitizeForTsv(row)) + '\r\n')
            else:
                self.pycsv_writer.writerows(rows)
        except (OSError, csv.Error) as ex:
            log.exception('Failed to write {} rows'.format('tsv' if self.is_tsv else 'csv'))

    def GetFileSize(self):
        '''Return csv/tsv's filesize or None if error'''
        try:
            return os.path.getsize(self.filepath)
        except OSError as ex:
            log.warning('Failed to retrieve file size for {}: {}'.format('TSV' if self.is_tsv else 'CSV', self.filepath))
        return None

    def Cleanup(self):
        if self.file_handle != None:
            self.file_handle.close()
            self.file_handle = None
        if self.delete_empty_files:
            file_size = self.GetFileSize()
            if file_size == 0:
                log.debug("Deleting empty file : " + self.filepath)
                os.remove(self.filepath)

class JsonlWriter:
    def __init__(self, delete_empty_files=True):
        self.filepath = ''
        self.jsonl_writer = None
        self.column_names = None
        self.delete_empty_files = delete_empty_files

    def CreateJsonlFile(self, filepath):
        '''Creates a jsonl file with suggested name, or the next available name'''
        self.filepath = CommonFunctions.GetNextAvailableFileName(filepath)
        try:
            self.jsonl_writer = jsonlines.open(self.filepath, mode='w')
        except OSError as ex:
            log.error(f'Failed to create JSONL file at path {self.filepath}')
            log.exception('Error details')
            raise ex

    def AddHeaders(self, column_info):
        self.column_names = list(column_info.keys())

    def WriteRow(self, row):
        try:
            to_write = dict(zip(self.column_names, row))
            for k, v in to_write.items():
                if v is None:
                    to_write[k] = ''
                elif not isinstance(v, (str, int, float)):
                    to_write[k] = str(v)
            self.jsonl_writer.write(to_write)
        except (OSError, TypeError, ValueError) as ex:
            log.exception('Failed to write jsonl row ' + str(row))

    def WriteRows(self, rows):
        for row in rows:
            self.WriteRow(row)

    def Cleanup(self):
        if self.jsonl_writer != None:
            self.jsonl_writer.close()
            self.jsonl_writer = None
        if self.delete_empty_files:
            try:
                if os.path.getsize(self.filepath) == 0:
                    log.debug("Deleting empty file : " + self.filepath)
                    os.remove(self.filepath)
            except OSError:
                log.warning(f'Failed to retrieve file size for JSONL: {self.filepath}')

class ExcelSheetInfo:
    def __init__(self, name):
        self.name = name
        self.max_row_index = 0 # Index of last row
        self.max_col_index = 0 # Index of last col
        self.col_width_list = None # List of max_char_count in each column
        self.col_types = None # DataType of columns in the sheet

    def StoreColWidth(self, row):
        for column_index, item in enumerate(row):
            width = len(item) + 1
            if width > self.col_width_list[column_index]:
                self.col_width_list[column_index] = width

class ExcelWriter:
    def __init__(self):
        self.filepath = ''
        self.workbook = None
        self.sheet = None # will hold current worksheet
        self.row_index = 0
        self.bold = None
        self.date_format = None
        self.num_format = None
        self.sheet_info_list = []
        self.current_sheet_info = None

    def CreateXlsxFile(self, filepath):
        '''Creates an xlsx file with suggested name, or the next available name'''
        self.filepath = CommonFunctions.GetNextAvailableFileName(filepath)
        try:
            self.workbook = xlsxwriter.Workbook(self.filepath, {'strings_to_urls': False, 'constant_memory': True}) #Turning off auto-URL generation as excel freaks on \r \n in url or paths
            self.bold = self.workbook.add_format({'bold': 1})
            self.date_format = self.workbook.add_format({'num_format':'YYYY-MM-DD HH:MM:SS'})
            self.num_format = self.workbook.add_format()
            self.num_format.set_num_format('#,###')
        except (xlsxwriter.exceptions.XlsxWriterException, OSError) as ex:
            log.error('Failed to create xlsx file at path {}'.format(self.filepath))
            log.exception('Error details')
            raise ex

    def SheetExists(self, sheet_name):
        name = sheet_name.lower()
        return any(sheet.get_name().lower() == name for sheet in self.workbook.worksheets())

    def GetNextAvailableSheetName(self, sheet_name):
        name = sheet_name
        if self.SheetExists(name):
            sheet_name = name[0:29] # excel can only handle 31 char sheetnames, leave room for 2 digits
            index = 1
            name = sheet_name + '{0:02d}'.format(index)
            while (self.SheetExists(name)):
                index += 1
                name = sheet_name + '{0:02d}'.format(index)
        return name

    def CreateSheet(self, sheet_name):
        sheet_name = sheet_name.replace('_','') # Remove _ to shorten name
        if len(sheet_name) > 31:
            log.warning('Sheet name "{}" is longer than the Excel limit of 31 char. It will be truncated to 31 char!'.format(sheet_name))
            sheet_name = sheet_name[0:31]
        sheet_name = self.GetNextAvailableSheetName(sheet_name)
        try:
            self.sheet = self.workbook.add_worksheet(sheet_name)
        except xlsxwriter.exceptions.XlsxWriterException as ex:
            log.exception('Unknown error while adding sheet {}'.format(sheet_name))
            raise ex
        self.row_index = 0 # Need to reset for new sheet
        self.current_sheet_info = ExcelSheetInfo(sheet_name)
        self.sheet_info_list.append(self.current_sheet_info)

    def AddHeaders(self, column_info):
        for column_index, col_name in enumerate(column_info):
            self.sheet.write_string(self.row_index, column_index, col_name, self.bold)
        self.row_index += 1
        info = self.current_sheet_info
        info.max_col_index = len(column_info) - 1
        info.max_row_index = 0
        info.col_width_list = [len(col_name)+3 for col_name in column_info] # +3 is to cover autofilter dropdown button
        info.col_types = list(column_info.values())

    def WriteRow(self, row):
        col_types = self.current_sheet_info.col_types
        row_str = tuple(map(str, row))
        for column_index, item in enumerate(row_str):
            try:
                if item == '' or row[column_index] is None: pass
                elif col_types[column_index] in (DataType.INTEGER, DataType.REAL):
                    self.sheet.write_number(self.row_index, column_index, row[column_index], self.num_format)
                elif col_types[column_index] == DataType.DATE:
                    self.sheet.write_datetime(self.row_index, column_index, row[column_index], self.date_format)
                else:
                    self.sheet.write(self.row_index, column_index, item)
            except (TypeError, ValueError, xlsxwriter.exceptions.XlsxWriterException):
                log.exception('Error writing data:{} of type:{} in excel row:{} '.format(item, type(row[column_index]), self.row_index))
        self.current_sheet_info.max_row_index = self.row_index
        self.current_sheet_info.StoreColWidth(row_str)
        self.row_index += 1

    def WriteRows(self, rows):
        for row in rows:
            self.WriteRow(row)

    def Beautify(self):
        '''Set column widths, auto filter and freeze top row'''
        for sheet_info in self.sheet_info_list:
            sheet = self.workbook.get_worksheet_by_name(sheet_info.name)
            sheet.freeze_panes(1, 0) # Freeze 1st row
            for col_index, col_width in enumerate(sheet_info.col_width_list):
                if sheet_info.col_types[col_index] in (DataType.INTEGER, DataType.REAL):
                    col_width += col_width//4 - 1
                elif sheet_info.col_types[col_index] == DataType.DATE:
                    col_width = 18
                sheet.set_column(col_index, col_index, min(col_width, 60))
            sheet.autofilter(0, 0, sheet_info.max_row_index, sheet_info.max_col_index)

    def CommitAndCloseFile(self):
        if self.workbook != None:
            self.Beautify()
            self.workbook.close()
            self.workbook = None

# Plugins should call this function to write out data formatted as a spreadsheet/table
def WriteList(data_description, data_name, data_list, data_type_info, output_params, source_file=''):
    '''
    Writes a list (of either lists or dicts) provided, output types defined by output_params
    Parameters include -
    data_description : String describing what data is provided
    data_name        : Name for file or db table
    data_list        : List of (list or dict)
    data_type_info   : List of (name, DataType) tuples describing columns as needed by DataWriter()
    output_params    : OutputParams object
    source_file      : Source file(s) where data was extracted from
    '''
    if len(data_list) == 0:
        log.info("No " + data_description + " was retrieved!")
        return
    try:
        log.debug ("Trying to write out " + data_description)
        writer = DataWriter(output_params, data_name, data_type_info, source_file)
        try:
            writer.WriteRows(data_list)
        except (OSError, ValueError, xlsxwriter.exceptions.XlsxWriterException, sqlite3.Error) as ex:
            log.exception ("Failed to write row data")
        finally:
            writer.FinishWrites()
    except (OSError, xlsxwriter.exceptions.XlsxWriterException, sqlite3.Error) as ex:
        log.exception ("Failed to initialize data writer")
