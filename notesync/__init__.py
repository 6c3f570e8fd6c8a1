"""NoteSync: notes, folders and tags synchronized with a document backend."""
