"""Classes for handling the SOAP requirements of UPnP control.

This module does not handle anything like the full `SOAP Specification
<http://www.w3.org/TR/soap/>`_ , but is enough for sonoscli's needs. Sonos
uses SOAP 1.1 in the RPC form for UPnP control actions.

A call never raises for a fault reported by the device. It returns a
`SoapResult`, which is either a `SoapSuccess` or a `SoapFault`, and leaves
it to the caller to decide what a fault means. Only transport level
problems are raised, as `Unreachable`.
"""

import logging
from collections import namedtuple
from xml.sax.saxutils import escape

import requests

from . import config
from .exceptions import Unreachable
from .utils import prettify
from .xml import XML, fromstring_filtered, ns_tag

_LOG = logging.getLogger(__name__)


class SoapSuccess(namedtuple("SoapSuccessBase", "fields")):
    """The output arguments of a successful action.

    ``fields`` is a dict of ``{argument_name: value}`` items, all strings.
    An empty dict is a valid result. It just means that no arguments are
    returned.
    """

    ok = True


class SoapFault(namedtuple("SoapFaultBase", "fault_code, fault_string, error_xml")):
    """A fault reported by the device.

    ``fault_code`` is the UPnP ``errorCode`` verbatim (eg ``"701"``) when
    the device supplied one, otherwise the SOAP ``faultcode``, or the HTTP
    status code if the body was not a SOAP Fault at all.
    """

    ok = False


# Sonos uses SOAP to send commands in the RPC form. A complete RPC SOAP
# message should look something like this. See generally
# http://www.w3.org/TR/2000/NOTE-SOAP-20000508/

# POST path of control URL HTTP/1.1
# HOST: host of control URL:port of control URL
# CONTENT-LENGTH: bytes in body
# CONTENT-TYPE: text/xml; charset="utf-8"
# SOAPACTION: "urn:schemas-upnp-org:service:serviceType:v#actionName"
#
# <?xml version="1.0"?>
# <s:Envelope
#   xmlns:s="http://schemas.xmlsoap.org/soap/envelope/"
#   s:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/">
#   <s:Body>
#       <u:actionName
#           xmlns:u="urn:schemas-upnp-org:service:serviceType:v">
#           <argumentName>in arg value</argumentName>
#           ... other in args and their values go here, if any
#       </u:actionName>
#   </s:Body>
# </s:Envelope>

# pylint: disable=too-many-instance-attributes, too-many-arguments


class SoapMessage:

    """A SOAP Message representing a UPnP remote procedure call.

    Uses the `Requests <http://www.python-requests.org/en/latest/>`_ library
    for communication with the device.
    """

    def __init__(
        self,
        endpoint,
        method,
        parameters=None,
        namespace=None,
        http_headers=None,
        **request_args
    ):
        """
        Args:
            endpoint (str): The control URL to post to.
            method (str): The name of the action to call.
            parameters (list): A list of (name, value) tuples containing
                the arguments to pass, in the order the service schema
                defines them. Default `None`.
            namespace (str): The service type URN, used both for the action
                element and the SOAPACTION header.
            http_headers (dict): A dict in the form {'Header': 'Value,..}
                containing extra http headers. Content-type and SOAPACTION
                headers will be created automatically, so do not include
                them here.
            **request_args: Other keyword parameters will be passed to the
                Requests request which is used to handle the http
                communication. For example, a timeout value can be set.
        """
        self.endpoint = endpoint
        self.method = method
        self.parameters = [] if parameters is None else parameters
        self.namespace = namespace
        self.http_headers = http_headers
        self.request_args = request_args

    @property
    def soap_action(self):
        """str: The value of the SOAPACTION header, without quotes."""
        return "{}#{}".format(self.namespace, self.method)

    def prepare_headers(self):
        """Prepare the http headers for sending.

        Returns:
            dict: headers including the quoted SOAPACTION header.
        """
        headers = {
            "Content-Type": 'text/xml; charset="utf-8"',
            "SOAPACTION": '"{}"'.format(self.soap_action),
        }
        if self.http_headers is not None:
            headers.update(self.http_headers)
        return headers

    @staticmethod
    def wrap_arguments(args=None):
        """Wrap a list of tuples in xml ready to pass into a SOAP request.

        Args:
            args (list):  a list of (name, value) tuples specifying the
                name of each argument and its value, eg
                ``[('InstanceID', 0), ('Speed', 1)]``. The value
                can be a string or something with a string representation. The
                arguments are escaped and wrapped in <name> tags, in the
                order given.

        Example:

            >>> print(SoapMessage.wrap_arguments([('InstanceID', 0), ('Speed', 1)]))
            <InstanceID>0</InstanceID><Speed>1</Speed>
        """
        tags = []
        for name, value in args or []:
            tag = "<{name}>{value}</{name}>".format(
                name=name, value=escape("%s" % value, {'"': "&quot;"})
            )
            tags.append(tag)
        return "".join(tags)

    def prepare_soap_body(self):
        """Prepare the SOAP Body for sending.

        Returns:
            str: The namespace qualified action element with its arguments.
        """
        return '<u:{method} xmlns:u="{namespace}">{params}</u:{method}>'.format(
            method=self.method,
            namespace=self.namespace,
            params=self.wrap_arguments(self.parameters),
        )

    @staticmethod
    def prepare_soap_envelope(prepared_soap_body):
        """Prepare the SOAP Envelope for sending.

        Args:
            prepared_soap_body (str): A SOAP Body prepared by
                `prepare_soap_body`

        Returns:
            str: A prepared SOAP Envelope
        """

        # pylint: disable=bad-continuation
        soap_env_template = (
            '<?xml version="1.0"?>'
            '<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/"'
            ' s:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/">'
                "<s:Body>"
                    "{soap_body}"
                "</s:Body>"
            "</s:Envelope>"
        )  # noqa PEP8
        return soap_env_template.format(soap_body=prepared_soap_body)

    def prepare(self):
        """Prepare the SOAP message for sending to the device.

        Returns:
            tuple: the POST headers (as a dict) and the envelope (as a str).
        """
        headers = self.prepare_headers()
        data = self.prepare_soap_envelope(self.prepare_soap_body())
        return (headers, data)

    def call(self):
        """Call the action on the device, exactly once.

        Returns:
            SoapSuccess or SoapFault: the decoded response.

        Raises:
            Unreachable: if the device could not be contacted, or sent
                back something which is not a SOAP envelope.
        """
        headers, data = self.prepare()

        # Check log level before logging XML, since prettifying it is
        # expensive
        if _LOG.isEnabledFor(logging.DEBUG):
            _LOG.debug("Sending %s, %s", headers, prettify(data))

        request_args = dict(self.request_args)
        request_args.setdefault("timeout", config.REQUEST_TIMEOUT)
        try:
            response = requests.post(
                self.endpoint,
                headers=headers,
                data=data.encode("utf-8"),
                **request_args
            )
        except requests.exceptions.RequestException as error:
            raise Unreachable(self.endpoint, str(error)) from error

        _LOG.debug("Received %s, %s", response.headers, response.text)
        status = response.status_code
        if status == 200:
            return SoapSuccess(self.unwrap_arguments(response.text))
        return self.parse_fault(status, response.text)

    def unwrap_arguments(self, xml_response):
        """Extract arguments and their values from a SOAP response.

        Args:
            xml_response (str):  SOAP/xml response text (unicode,
                not utf-8).
        Returns:
             dict: a dict of ``{argument_name: value}`` items.

        Raises:
            Unreachable: if the response is not a SOAP envelope.
        """
        try:
            tree = fromstring_filtered(xml_response)
        except XML.ParseError as error:
            raise Unreachable(self.endpoint, "malformed response") from error

        # Get the first child of the <Body> tag which will be
        # <{actionNameResponse}>. Turn the children of this into a
        # {tagname, content} dict. XML unescaping is carried out for us by
        # elementree, so embedded DIDL-Lite arrives here as a plain string.
        body = tree.find(ns_tag("s", "Body"))
        if body is None or len(body) == 0:
            raise Unreachable(self.endpoint, "response has no SOAP body")
        return {child.tag.split("}")[-1]: child.text or "" for child in body[0]}

    @staticmethod
    def parse_fault(status, xml_error):
        """Decode an error response into a `SoapFault`.

        An error response looks something like this::

            HTTP/1.1 500 Internal Server Error
            CONTENT-TYPE: text/xml; charset="utf-8"

            <s:Envelope ...>
              <s:Body>
                <s:Fault>
                  <faultcode>s:Client</faultcode>
                  <faultstring>UPnPError</faultstring>
                  <detail>
                    <UPnPError xmlns="urn:schemas-upnp-org:control-1-0">
                      <errorCode>error code</errorCode>
                      <errorDescription>error string</errorDescription>
                    </UPnPError>
                  </detail>
                </s:Fault>
              </s:Body>
            </s:Envelope>

        Sonos rarely fills in errorDescription.

        Args:
            status (int): The HTTP status code.
            xml_error (str): The response body.

        Returns:
            SoapFault: the fault. The HTTP status is used as the fault code
            when the body is not a SOAP Fault.
        """
        try:
            tree = fromstring_filtered(xml_error)
        except XML.ParseError:
            tree = None
        fault = tree.find(".//" + ns_tag("s", "Fault")) if tree is not None else None
        if fault is None:
            _LOG.error("Non SOAP error %s received: %s", status, xml_error)
            return SoapFault(str(status), "HTTP Error {}".format(status), xml_error)

        error_code = fault.findtext(".//" + ns_tag("control", "errorCode"))
        if error_code is not None:
            description = fault.findtext(
                ".//" + ns_tag("control", "errorDescription"), ""
            )
            return SoapFault(error_code.strip(), description, xml_error)
        return SoapFault(
            fault.findtext("faultcode", ""),
            fault.findtext("faultstring", ""),
            xml_error,
        )
