import base64
import json
import pickle
import typing as tp

from swcache._models import StoredResponse

__all__ = ("PickleSerializer", "JSONSerializer", "BaseSerializer")


class BaseSerializer:
    def dumps(self, response: StoredResponse) -> tp.Union[str, bytes]:
        raise NotImplementedError()

    def loads(self, data: tp.Union[str, bytes]) -> StoredResponse:
        raise NotImplementedError()

    @property
    def is_binary(self) -> bool:
        raise NotImplementedError()


class PickleSerializer(BaseSerializer):
    """
    A simple pickle-based serializer.
    """

    def dumps(self, response: StoredResponse) -> tp.Union[str, bytes]:
        """
        Dumps the captured response.

        :param response: A captured HTTP response
        :type response: StoredResponse
        :return: Serialized response
        :rtype: tp.Union[str, bytes]
        """
        return pickle.dumps(response)

    def loads(self, data: tp.Union[str, bytes]) -> StoredResponse:
        """
        Loads the captured response from serialized data.

        :param data: Serialized data
        :type data: tp.Union[str, bytes]
        :return: The captured HTTP response
        :rtype: StoredResponse
        """
        assert isinstance(data, bytes)
        return tp.cast(StoredResponse, pickle.loads(data))

    @property
    def is_binary(self) -> bool:  # pragma: no cover
        return True


class JSONSerializer(BaseSerializer):
    """A simple json-based serializer."""

    def dumps(self, response: StoredResponse) -> tp.Union[str, bytes]:
        """
        Dumps the captured response.

        :param response: A captured HTTP response
        :type response: StoredResponse
        :return: Serialized response
        :rtype: tp.Union[str, bytes]
        """
        response_dict = {
            "status_code": response.status_code,
            "headers": [[key, value] for key, value in response.headers],
            "content": base64.b64encode(response.content).decode("ascii"),
            "url": response.url,
            "stored_at": response.stored_at,
        }

        return json.dumps(response_dict, indent=4)

    def loads(self, data: tp.Union[str, bytes]) -> StoredResponse:
        """
        Loads the captured response from serialized data.

        :param data: Serialized data
        :type data: tp.Union[str, bytes]
        :return: The captured HTTP response
        :rtype: StoredResponse
        """

        response_dict = json.loads(data)

        return StoredResponse(
            status_code=response_dict["status_code"],
            headers=[(key, value) for key, value in response_dict["headers"]],
            content=base64.b64decode(response_dict["content"].encode("ascii")),
            url=response_dict["url"],
            stored_at=response_dict["stored_at"],
        )

    @property
    def is_binary(self) -> bool:
        return False
