"""
There are two repositories holding the cards of an account, a local vdir and
a CardDAV addressbook. Both offer the same CRUD-ish methods, the exact
interface is described in `cardamom.storage.base`.
"""
