"""
Migration models, execution log and the SafeMigration base class.
"""
