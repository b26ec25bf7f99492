from .VERSION import Commit, Version
from .errors import FieldError, FieldErrorType
from .fetch import IngressObject, IngressStorage, ResourceReader
from .gateway import GatewayResources
from .merge import Converter
