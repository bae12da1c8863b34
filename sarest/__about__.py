__version__ = "0.1.0"
__description__ = "sarest : SqlAlchemy Flask-Restful query shaping and Swagger resource descriptors"
