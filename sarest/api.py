# flask_restful API subclass exposing sarest resources
#
# For every resource we create:
# - a collection endpoint: /{plural}          (HEAD, GET, POST, DELETE)
# - an instance endpoint:  /{plural}/<id>     (HEAD, GET, PUT, DELETE)
# - the API declaration:   {DOCS_PATH}/{plural}
# The resource listing is served on {DOCS_PATH}
# Only the verbs enabled in the resource configuration are routed.
#
# pylint: disable=logging-format-interpolation,redefined-builtin
import logging
from functools import wraps
from http import HTTPStatus
from typing import Any, Callable, Dict, List

import werkzeug
from flask import Flask, current_app, jsonify, make_response, request
from flask_restful import Api as RestfulApi, Resource as RestfulResource, abort
import sarest
from .config import get_config
from .errors import MalformedInputError, NotFoundError, SARESTError
from .json_encoder import SARESTJSONProvider
from .resource import Resource
from .shaper import RequestShaper, ShapingPipeline
from .swagger_doc import generate_resource_listing

COLLECTION_VERBS = ("head", "get", "post", "delete")
INSTANCE_VERBS = ("head", "get", "put", "delete")


def http_method_decorator(fun: Callable) -> Callable:
    """Decorator for the exposed HTTP methods
    - commit the database
    - convert all exceptions to a JSON serializable error

    :param fun:
    :return: wrapped fun
    """

    @wraps(fun)
    def method_wrapper(*args, **kwargs):
        """Wrap the method and perform error handling
        :param *args:
        :param **kwargs:
        :return: result of the wrapped method
        """
        sarest_exception = None
        status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
        message = ""
        try:
            result = fun(*args, **kwargs)
            sarest.DB.session.commit()
            return result

        except SARESTError as exc:
            # this also catches sarest.errors.NotFoundError
            sarest_exception = exc

        except werkzeug.exceptions.HTTPException as exc:
            status_code = exc.code
            message = exc.description
            sarest.log.error(message)

        except Exception as exc:
            sarest.log.exception(exc)
            if sarest.log.getEffectiveLevel() > logging.DEBUG:
                message = "Logging Disabled"
            else:
                message = str(exc)

        status_code = getattr(sarest_exception, "status_code", status_code)
        api_code = getattr(sarest_exception, "api_code", None) or status_code
        title = getattr(sarest_exception, "message", message)
        detail = getattr(sarest_exception, "detail", title)

        sarest.DB.session.rollback()
        errors = dict(title=title, detail=detail, code=str(api_code))
        abort(status_code, errors=[errors])

    return method_wrapper


class SARESTResource(RestfulResource):
    """
    Superclass for the exposed endpoints, `resource` is set on the generated subclasses
    """

    resource: Resource = None
    pipeline = ShapingPipeline()
    method_decorators = [http_method_decorator]

    def shaped_query(self, plural: bool = True):
        """
        Run the shaping stages on the current request
        :param plural: False for instance routes, these ignore skip and limit
        :return: query builder
        """
        request.shaping_context(self.resource, plural=plural)
        return self.pipeline(request)

    def default_query(self):
        """
        :return: query builder with only the resource defaults applied (used to render written documents)
        """
        query = self.resource.query()
        RequestShaper(self.resource.config).apply_controller_defaults(query)
        return query

    def not_found(self, plural: bool) -> NotFoundError:
        if plural:
            return NotFoundError(f"No {self.resource.plural} matched that query.")
        return NotFoundError(f"No {self.resource.singular} was found with that ID.")

    def find_instance(self, id, query=None):
        query = query if query is not None else self.default_query()
        instance = query.where_id(id).first(sarest.DB.session)
        if instance is None:
            raise self.not_found(plural=False)
        return instance


class SARESTCollectionAPI(SARESTResource):
    """
    Collection endpoint: /{plural}
    """

    def get(self):
        """
        Retrieve the documents matching the shaping parameters
        """
        query = self.shaped_query()
        instances = query.all(sarest.DB.session)
        if not instances:
            raise self.not_found(plural=True)
        return jsonify([query.serialize(instance) for instance in instances])

    def post(self):
        """
        Create one document (json object) or several documents (json list)
        """
        payload = request.get_json(silent=True)
        if payload is None:
            raise MalformedInputError("The request body must be a json object or list")
        documents = payload if isinstance(payload, list) else [payload]
        instances = [self.resource.create(document) for document in documents]
        sarest.DB.session.add_all(instances)
        sarest.DB.session.flush()

        query = self.default_query()
        result = [query.serialize(instance) for instance in instances]
        if not isinstance(payload, list):
            result = result[0]
        return make_response(jsonify(result), HTTPStatus.CREATED)

    def delete(self):
        """
        Remove the documents matching the conditions
        """
        query = self.shaped_query()
        instances = query.all(sarest.DB.session)
        if not instances:
            raise self.not_found(plural=True)
        for instance in instances:
            sarest.DB.session.delete(instance)
        return jsonify(len(instances))


class SARESTInstanceAPI(SARESTResource):
    """
    Instance endpoint: /{plural}/<id>
    """

    def get(self, id):
        query = self.shaped_query(plural=False)
        return jsonify(query.serialize(self.find_instance(id, query)))

    def put(self, id):
        """
        Update the given attributes
        """
        instance = self.find_instance(id)
        self.resource.assign(instance, request.get_json(silent=True))
        sarest.DB.session.flush()
        return jsonify(self.default_query().serialize(instance))

    def delete(self, id):
        instance = self.find_instance(id, self.shaped_query(plural=False))
        sarest.DB.session.delete(instance)
        return jsonify(1)


class SARESTDeclarationAPI(RestfulResource):
    """
    Swagger API declaration of a resource: {DOCS_PATH}/{plural}
    """

    resource: Resource = None
    prefix = ""
    method_decorators = [http_method_decorator]

    def get(self):
        base_path = current_app.config.get("BASE_PATH") or request.url_root.rstrip("/") + self.prefix
        return jsonify(self.resource.api_definition(base_path=base_path))


class SARESTListingAPI(RestfulResource):
    """
    Swagger resource listing: {DOCS_PATH}
    """

    sarest_api = None
    method_decorators = [http_method_decorator]

    def get(self):
        return jsonify(generate_resource_listing(resource.config for resource in self.sarest_api.exposed))


class SARESTAPI(RestfulApi):
    """
    Subclass of the flask_restful API class where we add the expose methods,
    these create the API url endpoints and the corresponding swagger documentation
    """

    def __init__(self, app: Flask, prefix: str = "", app_db=None, **kwargs) -> None:
        """
        :param app: Flask application
        :param prefix: url prefix of the api endpoints
        :param app_db: Flask-SQLAlchemy instance, defaults to the one registered on the app
        :param kwargs: sarest configuration settings (eg. MAX_PAGE_LIMIT)
        """
        self.exposed: List[Resource] = []
        self.registry: Dict[Any, Resource] = {}
        sarest.SAREST(app, app_db=app_db, **kwargs)
        super().__init__(app, prefix=prefix)
        app.json = SARESTJSONProvider(app)
        listing_api = type("sarest_listing_API", (SARESTListingAPI,), {"sarest_api": self})
        self.add_resource(listing_api, get_config("DOCS_PATH"), endpoint="sarest_api_docs")

    def expose(self, *resources, url_prefix: str = "", **config) -> List[Resource]:
        """
        Expose multiple resources (or models) at once
        """
        return [self.expose_resource(resource, url_prefix, **config) for resource in resources]

    def expose_resource(self, resource, url_prefix: str = "", **config) -> Resource:
        """This method creates the API url endpoints for a resource
        :param resource: sarest Resource, or an SQLAlchemy model that will be wrapped in a Resource
        :param url_prefix: url prefix
        :param config: resource configuration, used when a model is passed
        :return: the exposed Resource
        """
        if not isinstance(resource, Resource):
            resource = Resource(resource, **config)

        plural = resource.plural
        verbs = resource.config.active_verbs()
        properties = {"resource": resource}

        # Expose the collection
        url = f"{url_prefix}/{plural}"
        methods = [verb.upper() for verb in verbs if verb in COLLECTION_VERBS]
        if methods:
            api_class = type(f"{plural}_API", (SARESTCollectionAPI,), properties)
            sarest.log.info(f"Exposing {plural} on {url} ({methods})")
            self.add_resource(api_class, url, endpoint=f"sarest_{plural}", methods=methods)

        # Expose the instances
        url = f"{url_prefix}/{plural}/<string:id>"
        methods = [verb.upper() for verb in verbs if verb in INSTANCE_VERBS]
        if methods:
            api_class = type(f"{plural}_API_i", (SARESTInstanceAPI,), properties)
            sarest.log.info(f"Exposing {resource.singular} instances on {url} ({methods})")
            self.add_resource(api_class, url, endpoint=f"sarest_{plural}_instance", methods=methods)

        # Expose the documentation
        url = f"{get_config('DOCS_PATH')}/{plural}"
        api_class = type(f"{plural}_API_docs", (SARESTDeclarationAPI,), {"resource": resource, "prefix": self.prefix + url_prefix})
        self.add_resource(api_class, url, endpoint=f"sarest_{plural}_docs")

        self.exposed.append(resource)
        self.registry[resource.model] = resource
        resource.registry = self.registry
        return resource
