#!/usr/bin/env python3
"""
JSON-RPC 2.0 Server for ValidationService

Provides a JSON-RPC interface to field-validation-lib, enabling usage from any
programming language that can spawn a process and communicate via stdin/stdout.

Protocol: JSON-RPC 2.0 over stdin/stdout (newline-delimited JSON)
Specification: https://www.jsonrpc.org/specification

Usage:
    python -m field_validation.jsonrpc_server [--debug] [--config PATH]

Example request (stdin):
    {"jsonrpc":"2.0","id":1,"method":"validate","params":{"schema_name":"user_request_validation","data":{"country":"US"}}}

Example response (stdout):
    {"jsonrpc":"2.0","id":1,"result":{"valid":false,"violations":[...],"errors":{...}}}
"""

import sys
import json
import datetime
import signal
import logging
import argparse
from typing import Any, Dict, List, Optional

from field_validation.api import ValidationService
from field_validation.config_loader import ConfigLoader
from field_validation.exceptions import (
    SchemaDocumentError,
    SchemaSourceError,
    UnknownSchemaError,
)
from field_validation.models import Violation, errors_by_field

logger = logging.getLogger(__name__)


class InvalidParamsError(ValueError):
    """Request params are missing or have the wrong shape."""


class MethodNotFoundError(LookupError):
    """No handler is registered for the requested method."""


def _json_default(value: Any) -> Any:
    # Coerced dates go back out in ISO form
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    return str(value)


def _violations_result(violations: List[Violation]) -> Dict[str, Any]:
    return {
        "valid": not violations,
        "violations": [v.to_dict() for v in violations],
        "errors": errors_by_field(violations),
    }


class ValidationJsonRpcServer:
    """JSON-RPC 2.0 server wrapping ValidationService API."""

    # JSON-RPC error codes
    ERROR_PARSE = -32700        # Invalid JSON
    ERROR_INVALID_REQUEST = -32600  # Invalid JSON-RPC structure
    ERROR_METHOD_NOT_FOUND = -32601  # Unknown method
    ERROR_INVALID_PARAMS = -32602   # Invalid parameters
    ERROR_INTERNAL = -32000      # Application error (catch-all)
    ERROR_SCHEMA = -32001        # Unknown schema (strict mode) or schema source failure

    def __init__(self, debug: bool = False, config_path: Optional[str] = None,
                 service: Optional[ValidationService] = None):
        """
        Initialize JSON-RPC server.

        Args:
            debug: Enable debug logging to stderr
            config_path: Optional local-config.yaml for the service
            service: Pre-built ValidationService (tests inject one)
        """
        self.service = service or ValidationService(config_path=config_path)
        self.running = False
        self.debug = debug

        # Method dispatch table
        self.methods = {
            'validate': self._handle_validate,
            'validate_fields': self._handle_validate_fields,
            'transform': self._handle_transform,
            'apply_updates': self._handle_apply_updates,
            'batch_validate': self._handle_batch_validate,
            'refresh_schema': self._handle_refresh_schema,
            'refresh_all_schemas': self._handle_refresh_all_schemas,
            'list_schemas': self._handle_list_schemas,
            'get_schema': self._handle_get_schema,
            'get_cache_age': self._handle_get_cache_age,
        }

    def _log(self, message: str):
        """Log debug message to stderr (doesn't interfere with JSON-RPC on stdout)."""
        if self.debug:
            logger.debug(message)

    def start_server(self):
        """
        Start the JSON-RPC server loop.

        Reads requests from stdin, processes them, writes responses to stdout.
        Runs until EOF or stop signal received.
        """
        self.running = True
        self._log("ValidationService JSON-RPC server started")

        while self.running:
            try:
                line = sys.stdin.readline()

                if not line:
                    # EOF - clean shutdown
                    self._log("EOF received, shutting down")
                    break

                if not line.strip():
                    continue

                self._log(f"Received: {line.strip()}")
                response = self.handle_request(line)
                self._send_response(response)

            except KeyboardInterrupt:
                self._log("KeyboardInterrupt received, shutting down")
                break

            except Exception:
                logger.exception("Fatal error in main loop")
                break

        self.service.close()
        self._log("Server stopped")

    def stop_server(self):
        """
        Stop the server gracefully.

        Sets running flag to False, causing the main loop to exit.
        """
        self.running = False
        self._log("Stop signal received")

    def handle_request(self, request_json: str) -> Dict[str, Any]:
        """
        Parse and process a JSON-RPC request.

        Args:
            request_json: JSON-RPC request string

        Returns:
            JSON-RPC response dict (success or error)
        """
        request_id = None

        try:
            try:
                request = json.loads(request_json)
            except json.JSONDecodeError as e:
                return self._error_response(None, self.ERROR_PARSE,
                                            f"Parse error: {e}")

            if not isinstance(request, dict):
                return self._error_response(None, self.ERROR_INVALID_REQUEST,
                                            "Request must be a JSON object")

            if request.get("jsonrpc") != "2.0":
                return self._error_response(None, self.ERROR_INVALID_REQUEST,
                                            f"Invalid JSON-RPC version: {request.get('jsonrpc')}")

            request_id = request.get("id")
            method = request.get("method")
            params = request.get("params", {})

            if not method:
                return self._error_response(request_id, self.ERROR_INVALID_REQUEST,
                                            "Missing 'method' field")

            if params is None:
                params = {}
            if not isinstance(params, dict):
                return self._error_response(request_id, self.ERROR_INVALID_PARAMS,
                                            f"Params must be an object, got {type(params).__name__}")

            self._log(f"Dispatching method: {method}")
            result = self._dispatch(method, params)

            return self._success_response(request_id, result)

        except MethodNotFoundError as e:
            return self._error_response(request_id, self.ERROR_METHOD_NOT_FOUND, str(e))

        except InvalidParamsError as e:
            return self._error_response(request_id, self.ERROR_INVALID_PARAMS, str(e))

        except UnknownSchemaError as e:
            return self._error_response(request_id, self.ERROR_SCHEMA, str(e),
                                        {"schema_name": e.schema_name})

        except (SchemaSourceError, SchemaDocumentError) as e:
            return self._error_response(request_id, self.ERROR_SCHEMA, str(e))

        except Exception as e:
            logger.exception("Error processing request")
            return self._error_response(request_id, self.ERROR_INTERNAL,
                                        f"Internal error: {e}")

    def _dispatch(self, method: str, params: Dict[str, Any]) -> Any:
        """
        Dispatch request to appropriate ValidationService method.

        Raises:
            MethodNotFoundError: If no handler is registered for method
            InvalidParamsError: If required params are missing
        """
        if method not in self.methods:
            raise MethodNotFoundError(f"Method not found: {method}")

        handler = self.methods[method]
        return handler(params)

    @staticmethod
    def _require(params: Dict[str, Any], name: str, kind: type = None) -> Any:
        value = params.get(name)
        if value is None or value == "":
            raise InvalidParamsError(f"Missing required parameter: {name}")
        if kind is not None and not isinstance(value, kind):
            raise InvalidParamsError(
                f"Parameter {name} must be {kind.__name__}, got {type(value).__name__}"
            )
        return value

    # Method handlers - wrap ValidationService API

    def _handle_validate(self, params: Dict[str, Any]) -> Any:
        """Handle 'validate' method."""
        schema_name = self._require(params, 'schema_name', str)
        data = self.service.transform(self._require(params, 'data', dict), schema_name)
        return _violations_result(self.service.validate(data, schema_name))

    def _handle_validate_fields(self, params: Dict[str, Any]) -> Any:
        """Handle 'validate_fields' method."""
        schema_name = self._require(params, 'schema_name', str)
        data = self.service.transform(self._require(params, 'data', dict), schema_name)
        field_names = self._require(params, 'fields', list)
        return _violations_result(self.service.validate_fields(data, schema_name, field_names))

    def _handle_transform(self, params: Dict[str, Any]) -> Any:
        """Handle 'transform' method."""
        schema_name = self._require(params, 'schema_name', str)
        data = self._require(params, 'data', dict)
        return {"data": self.service.transform(data, schema_name)}

    def _handle_apply_updates(self, params: Dict[str, Any]) -> Any:
        """Handle 'apply_updates' method."""
        schema_name = self._require(params, 'schema_name', str)
        data = params.get('data') or {}
        if not isinstance(data, dict):
            raise InvalidParamsError("Parameter data must be dict")
        updates = self._require(params, 'updates', dict)

        try:
            updated, violations = self.service.apply_updates(
                data, updates, schema_name, coerce=True
            )
        except TypeError as e:
            # An update path runs through a non-object value
            raise InvalidParamsError(str(e)) from e

        result = _violations_result(violations)
        result["data"] = updated
        return result

    def _handle_batch_validate(self, params: Dict[str, Any]) -> Any:
        """Handle 'batch_validate' method."""
        schema_name = self._require(params, 'schema_name', str)
        objects = self._require(params, 'objects', list)
        id_fields = params.get('id_fields') or []

        objects = [
            self.service.transform(obj, schema_name) if isinstance(obj, dict) else obj
            for obj in objects
        ]
        results = self.service.batch_validate(objects, schema_name, id_fields)
        return [
            {
                "entity_id": r["entity_id"],
                "schema_name": r["schema_name"],
                **_violations_result(r["violations"]),
            }
            for r in results
        ]

    def _handle_refresh_schema(self, params: Dict[str, Any]) -> Any:
        """Handle 'refresh_schema' method."""
        schema_name = self._require(params, 'schema_name', str)
        schema = self.service.refresh_schema(schema_name)
        return {
            "schema_name": schema_name,
            "status": "refreshed" if schema is not None else "evicted",
        }

    def _handle_refresh_all_schemas(self, params: Dict[str, Any]) -> Any:
        """Handle 'refresh_all_schemas' method."""
        # No parameters required
        count = self.service.refresh_all_schemas()
        return {"status": "ok", "schema_count": count}

    def _handle_list_schemas(self, params: Dict[str, Any]) -> Any:
        """Handle 'list_schemas' method."""
        return self.service.list_schemas()

    def _handle_get_schema(self, params: Dict[str, Any]) -> Any:
        """Handle 'get_schema' method."""
        schema_name = self._require(params, 'schema_name', str)
        schema = self.service.get_schema(schema_name)
        return schema.to_dict() if schema is not None else None

    def _handle_get_cache_age(self, params: Dict[str, Any]) -> Any:
        """Handle 'get_cache_age' method."""
        age = self.service.get_cache_age()
        return {"cache_age": age}

    # Response formatting

    def _success_response(self, request_id: Any, result: Any) -> Dict[str, Any]:
        """Format successful JSON-RPC response."""
        return {
            "jsonrpc": "2.0",
            "id": request_id,
            "result": result
        }

    def _error_response(self, request_id: Any, code: int, message: str,
                        data: Optional[Any] = None) -> Dict[str, Any]:
        """Format JSON-RPC error response."""
        error = {
            "code": code,
            "message": message
        }
        if data is not None:
            error["data"] = data

        return {
            "jsonrpc": "2.0",
            "id": request_id,
            "error": error
        }

    def _send_response(self, response: Dict[str, Any]):
        """Send JSON-RPC response to stdout."""
        response_json = json.dumps(response, default=_json_default)
        self._log(f"Sending: {response_json}")
        sys.stdout.write(response_json + "\n")
        sys.stdout.flush()


def main():
    """Main entry point for JSON-RPC server."""
    parser = argparse.ArgumentParser(
        description="ValidationService JSON-RPC 2.0 Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Example usage:
  python -m field_validation.jsonrpc_server
  python -m field_validation.jsonrpc_server --debug
  python -m field_validation.jsonrpc_server --config /etc/field-validation/local-config.yaml

Supported methods:
  - validate
  - validate_fields
  - apply_updates
  - batch_validate
  - refresh_schema
  - refresh_all_schemas
  - list_schemas
  - get_schema
  - get_cache_age

Protocol: JSON-RPC 2.0 over stdin/stdout
See: https://www.jsonrpc.org/specification
        """
    )
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug logging to stderr')
    parser.add_argument('--config', default=None,
                        help='Path to local-config.yaml (default: bundled config)')

    args = parser.parse_args()

    # stdout carries protocol traffic, so logs go to stderr
    level = logging.DEBUG if args.debug else ConfigLoader(args.config).get_log_level()
    logging.basicConfig(
        stream=sys.stderr,
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    server = ValidationJsonRpcServer(debug=args.debug, config_path=args.config)

    # Handle signals for graceful shutdown
    def signal_handler(sig, frame):
        server.stop_server()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    # Start server (blocks until stopped)
    server.start_server()


if __name__ == "__main__":
    main()
