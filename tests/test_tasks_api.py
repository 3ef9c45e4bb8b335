"""
Tests for api/routes/tasks.py: CRUD, permissions, partial updates, queries,
sorting and spreadsheet import.
"""
import csv
import io

import pytest

from conftest import ADMIN, DAY_NS, MAR_31_2026, MEMBER, OUTSIDER, as_user, make_task

URL = "/api/v1/tasks"


class TestCreate:
    def test_defaults(self, client, seeded):
        task = make_task(client, seeded["acme"])
        assert task["clientName"] == "Acme Ltd"
        assert task["assignedTo"] == MEMBER
        assert task["assignedName"] == "Priya Sharma"
        assert task["status"] == "pending"
        assert task["paymentStatus"] == "pending"
        assert task["captains"] == []
        assert task["assignmentDate"] == task["createdAt"]
        assert task["completionDate"] is None
        assert task["outstandingAmount"] is None

    def test_outstanding_computed(self, client, seeded):
        task = make_task(client, seeded["acme"], bill="50000", advanceReceived=20000)
        assert task["outstandingAmount"] == 30000

    def test_created_completed_gets_completion_date(self, client, seeded):
        task = make_task(client, seeded["acme"], status="completed")
        assert task["completionDate"] is not None

    def test_unknown_assignee_named_by_principal(self, client, seeded):
        task = make_task(client, seeded["acme"], principal=ADMIN, assignedTo=OUTSIDER)
        assert task["assignedName"] == OUTSIDER

    def test_unknown_client(self, client, seeded):
        resp = client.post(URL, json={"clientId": 999, "title": "x", "taskType": "GST"},
                           headers=as_user(MEMBER))
        assert resp.status_code == 404

    def test_bad_task_type(self, client, seeded):
        resp = client.post(URL, json={"clientId": seeded["acme"], "title": "x", "taskType": "Payroll"},
                           headers=as_user(MEMBER))
        assert resp.status_code == 422

    def test_negative_advance(self, client, seeded):
        resp = client.post(URL, json={"clientId": seeded["acme"], "title": "x", "taskType": "GST",
                                      "advanceReceived": -1}, headers=as_user(MEMBER))
        assert resp.status_code == 422

    def test_bulk_create(self, client, seeded):
        body = [{"clientId": seeded["acme"], "title": "A", "taskType": "GST"},
                {"clientId": seeded["globex"], "title": "B", "taskType": "Audit"}]
        resp = client.post(f"{URL}/bulk", json=body, headers=as_user(MEMBER))
        assert resp.status_code == 201
        assert [t["clientName"] for t in resp.json()] == ["Acme Ltd", "Globex Corp"]


class TestPermissions:
    def test_outsider_cannot_edit(self, client, seeded):
        task = make_task(client, seeded["acme"])
        resp = client.patch(f"{URL}/{task['id']}/comment", json={"comment": "hi"}, headers=as_user(OUTSIDER))
        assert resp.status_code == 403

    def test_captain_can_edit(self, client, seeded):
        task = make_task(client, seeded["acme"], captains=[OUTSIDER])
        resp = client.patch(f"{URL}/{task['id']}/comment", json={"comment": "hi"}, headers=as_user(OUTSIDER))
        assert resp.json()["comment"] == "hi"

    def test_admin_can_delete(self, client, seeded):
        task = make_task(client, seeded["acme"])
        assert client.delete(f"{URL}/{task['id']}", headers=as_user(ADMIN)).json() == {"deleted": 1}
        assert client.get(f"{URL}/{task['id']}", headers=as_user(ADMIN)).status_code == 404

    def test_bulk_delete_all_or_nothing(self, client, seeded):
        mine = make_task(client, seeded["acme"])
        theirs = make_task(client, seeded["acme"], principal=ADMIN)
        resp = client.post(f"{URL}/bulk-delete", json={"ids": [mine["id"], theirs["id"]]},
                           headers=as_user(MEMBER))
        assert resp.status_code == 403
        assert len(client.get(URL, headers=as_user(MEMBER)).json()) == 2

    def test_bulk_delete_counts_duplicates_once(self, client, seeded):
        task = make_task(client, seeded["acme"])
        resp = client.post(f"{URL}/bulk-delete", json={"ids": [task["id"], task["id"]]},
                           headers=as_user(MEMBER))
        assert resp.json() == {"deleted": 1}
        assert client.get(URL, headers=as_user(MEMBER)).json() == []

    def test_read_needs_sign_in(self, client, seeded):
        task = make_task(client, seeded["acme"])
        assert client.get(f"{URL}/{task['id']}").status_code == 401


class TestFullUpdate:
    def _body(self, seeded, **fields):
        return {"clientId": seeded["acme"], "title": "File GST", "taskType": "GST", **fields}

    def test_update_keeps_assignment_date(self, client, seeded):
        task = make_task(client, seeded["acme"])
        resp = client.put(f"{URL}/{task['id']}", json=self._body(seeded, title="File GSTR-1", bill="900"),
                          headers=as_user(MEMBER))
        body = resp.json()
        assert body["title"] == "File GSTR-1"
        assert body["assignmentDate"] == task["assignmentDate"]
        assert body["assignedTo"] == MEMBER
        assert body["outstandingAmount"] == 900

    def test_move_to_other_client(self, client, seeded):
        task = make_task(client, seeded["acme"])
        resp = client.put(f"{URL}/{task['id']}", json=self._body(seeded, clientId=seeded["globex"]),
                          headers=as_user(MEMBER))
        assert resp.json()["clientName"] == "Globex Corp"

    def test_reassign_resets_assignment_date(self, client, seeded):
        task = make_task(client, seeded["acme"])
        resp = client.put(f"{URL}/{task['id']}", json=self._body(seeded, assignedTo=ADMIN),
                          headers=as_user(MEMBER))
        body = resp.json()
        assert body["assignedName"] == "Asha Admin"
        assert body["assignmentDate"] >= task["assignmentDate"]

    def test_bulk_update(self, client, seeded):
        a = make_task(client, seeded["acme"])
        b = make_task(client, seeded["globex"])
        body = [{**self._body(seeded), "id": a["id"], "status": "hold"},
                {**self._body(seeded), "id": b["id"], "status": "docsPending"}]
        resp = client.put(URL, json=body, headers=as_user(MEMBER))
        assert [t["status"] for t in resp.json()] == ["hold", "docsPending"]

    def test_update_missing(self, client, seeded):
        resp = client.put(f"{URL}/999", json=self._body(seeded), headers=as_user(MEMBER))
        assert resp.status_code == 404


class TestPartialUpdates:
    def test_complete_then_reopen(self, client, seeded):
        task = make_task(client, seeded["acme"])
        done = client.patch(f"{URL}/{task['id']}/status", json={"status": "completed"},
                            headers=as_user(MEMBER)).json()
        assert done["completionDate"] is not None
        reopened = client.patch(f"{URL}/{task['id']}/status", json={"status": "inProgress"},
                                headers=as_user(MEMBER)).json()
        assert reopened["completionDate"] is None

    def test_complete_with_explicit_date(self, client, seeded):
        task = make_task(client, seeded["acme"])
        done = client.patch(f"{URL}/{task['id']}/status",
                            json={"status": "completed", "completionDate": MAR_31_2026},
                            headers=as_user(MEMBER)).json()
        assert done["completionDate"] == MAR_31_2026

    def test_blank_comment_clears(self, client, seeded):
        task = make_task(client, seeded["acme"], comment="old")
        resp = client.patch(f"{URL}/{task['id']}/comment", json={"comment": "   "}, headers=as_user(MEMBER))
        assert resp.json()["comment"] is None

    def test_bill(self, client, seeded):
        task = make_task(client, seeded["acme"])
        resp = client.patch(f"{URL}/{task['id']}/bill", json={"bill": "₹ 12,000", "advanceReceived": 2000},
                            headers=as_user(MEMBER))
        assert resp.json()["outstandingAmount"] == 10000

    def test_payment_keeps_bill(self, client, seeded):
        task = make_task(client, seeded["acme"], bill="5000", advanceReceived=1000)
        resp = client.patch(f"{URL}/{task['id']}/payment", json={"paymentStatus": "paid"},
                            headers=as_user(MEMBER))
        body = resp.json()
        assert body["paymentStatus"] == "paid"
        assert body["bill"] == "5000"
        assert body["outstandingAmount"] == 4000

    def test_payment_with_advance(self, client, seeded):
        task = make_task(client, seeded["acme"], bill="5000")
        resp = client.patch(f"{URL}/{task['id']}/payment",
                            json={"paymentStatus": "overdue", "advanceReceived": 5000},
                            headers=as_user(MEMBER))
        assert resp.json()["outstandingAmount"] == 0

    def test_captains_deduplicated(self, client, seeded):
        task = make_task(client, seeded["acme"])
        resp = client.patch(f"{URL}/{task['id']}/captains",
                            json={"captains": [ADMIN, " " + ADMIN, "", OUTSIDER]}, headers=as_user(MEMBER))
        assert resp.json()["captains"] == [ADMIN, OUTSIDER]

    def test_reassign(self, client, seeded):
        task = make_task(client, seeded["acme"])
        resp = client.patch(f"{URL}/{task['id']}/assignee",
                            json={"assignedTo": ADMIN, "assignedName": "Asha Admin"}, headers=as_user(MEMBER))
        assert resp.json()["assignedTo"] == ADMIN
        # previous assignee lost edit rights
        resp = client.patch(f"{URL}/{task['id']}/comment", json={"comment": "x"}, headers=as_user(MEMBER))
        assert resp.status_code == 403


class TestQueries:
    @pytest.fixture()
    def tasks(self, client, seeded):
        return [
            make_task(client, seeded["acme"], title="GST return", status="hold", subType="GSTR-3B",
                      dueDate=MAR_31_2026 + 5 * 3_600 * 10**9, paymentStatus="overdue"),
            make_task(client, seeded["globex"], title="Audit", taskType="Audit", status="pending",
                      dueDate=MAR_31_2026 + DAY_NS, comment="Waiting on ledger"),
            make_task(client, seeded["acme"], principal=ADMIN, title="TDS", taskType="TDS",
                      status="completed", completionDate=MAR_31_2026 + 3_600 * 10**9),
        ]

    def _ids(self, resp):
        return [t["id"] for t in resp.json()]

    def test_by_status(self, client, tasks):
        resp = client.get(f"{URL}/by-status/hold", headers=as_user(MEMBER))
        assert self._ids(resp) == [tasks[0]["id"]]

    def test_by_status_invalid(self, client, tasks):
        assert client.get(f"{URL}/by-status/stuck", headers=as_user(MEMBER)).status_code == 422

    def test_by_type(self, client, tasks):
        resp = client.get(f"{URL}/by-type/Audit", headers=as_user(MEMBER))
        assert self._ids(resp) == [tasks[1]["id"]]

    def test_filter(self, client, tasks):
        resp = client.post(f"{URL}/filter", json={"assigneeName": "priya", "searchTerm": "LEDGER"},
                           headers=as_user(MEMBER))
        assert self._ids(resp) == [tasks[1]["id"]]

    def test_filter_empty_matches_all(self, client, tasks):
        assert len(client.post(f"{URL}/filter", json={}, headers=as_user(MEMBER)).json()) == 3

    def test_filter_by_client_desc(self, client, tasks):
        resp = client.post(f"{URL}/filter/by-client", params={"ascending": False}, json={},
                           headers=as_user(MEMBER))
        assert [t["clientName"] for t in resp.json()] == ["Globex Corp", "Acme Ltd", "Acme Ltd"]

    def test_by_date_due(self, client, tasks):
        resp = client.get(f"{URL}/by-date", params={"date": MAR_31_2026 + 20 * 3_600 * 10**9},
                          headers=as_user(MEMBER))
        assert self._ids(resp) == [tasks[0]["id"]]

    def test_by_date_completion(self, client, tasks):
        resp = client.get(f"{URL}/by-date", params={"date": MAR_31_2026, "includeDue": False,
                                                   "includeCompletion": True}, headers=as_user(MEMBER))
        assert self._ids(resp) == [tasks[2]["id"]]

    def test_search_by_date(self, client, tasks):
        resp = client.get(f"{URL}/search-by-date", params={"date": MAR_31_2026}, headers=as_user(MEMBER))
        body = resp.json()
        assert body["date"] == MAR_31_2026
        assert [t["id"] for t in body["tasks"]] == [tasks[0]["id"], tasks[2]["id"]]

    def test_sort_status_rank(self, client, tasks):
        resp = client.get(URL, params={"sort": "status:asc"}, headers=as_user(MEMBER))
        assert [t["status"] for t in resp.json()] == ["pending", "hold", "completed"]

    def test_multi_column_sort(self, client, tasks):
        resp = client.get(URL, params=[("sort", "clientName:asc"), ("sort", "title:desc")],
                          headers=as_user(MEMBER))
        assert [t["title"] for t in resp.json()] == ["TDS", "GST return", "Audit"]

    def test_missing_dates_last(self, client, tasks):
        resp = client.get(URL, params={"sort": "dueDate:asc", "missing_dates_last": True},
                          headers=as_user(MEMBER))
        assert self._ids(resp) == [tasks[0]["id"], tasks[1]["id"], tasks[2]["id"]]
        resp = client.get(URL, params={"sort": "dueDate:asc"}, headers=as_user(MEMBER))
        assert self._ids(resp)[0] == tasks[2]["id"]

    def test_bad_sort(self, client, tasks):
        resp = client.get(URL, params={"sort": "colour:asc"}, headers=as_user(MEMBER))
        assert resp.status_code == 400
        assert "Invalid sort column" in resp.json()["detail"]

    def test_export_mine(self, client, tasks):
        resp = client.get(f"{URL}/export", params={"mine": True}, headers=as_user(ADMIN))
        assert self._ids(resp) == [tasks[2]["id"]]

    def test_export_selected(self, client, tasks):
        resp = client.post(f"{URL}/export/selected", json={"ids": [tasks[1]["id"]]}, headers=as_user(ADMIN))
        assert self._ids(resp) == [tasks[1]["id"]]
        assert client.post(f"{URL}/export/selected", json={"ids": []}, headers=as_user(ADMIN)).json() == []


class TestImport:
    ROW = "Acme Ltd, File GST, GST, , Pending, , Priya Sharma, 2026-03-31, , 50000, 25000, Pending"

    def test_template_lists_clients_and_members(self, client, seeded):
        resp = client.get(f"{URL}/import/template", headers=as_user(MEMBER))
        assert "# Acme Ltd" in resp.text
        assert f"# Priya Sharma (Principal: {MEMBER})" in resp.text

    def test_preview(self, client, seeded):
        data = self.ROW + "\nNobody, x, GST, , Pending, , Priya Sharma\n"
        resp = client.post(f"{URL}/import/preview", files={"file": ("t.csv", data, "text/csv")},
                           headers=as_user(MEMBER))
        body = resp.json()
        assert body["summary"]["valid_rows"] == 1
        assert body["rows"][1]["error"] == "Client not found"
        assert len(client.get(URL, headers=as_user(MEMBER)).json()) == 0

    def test_import(self, client, seeded):
        resp = client.post(f"{URL}/import", files={"file": ("t.csv", self.ROW, "text/csv")},
                           headers=as_user(ADMIN))
        assert resp.status_code == 201
        body = resp.json()
        assert body["message"] == "Successfully imported 1 task(s)"
        task = client.get(f"{URL}/{body['ids'][0]}", headers=as_user(ADMIN)).json()
        assert task["assignedTo"] == MEMBER
        assert task["dueDate"] == MAR_31_2026
        assert task["outstandingAmount"] == 25000

    def test_import_nothing_valid(self, client, seeded):
        resp = client.post(f"{URL}/import", files={"file": ("t.csv", "Nobody,x,GST,,Pending,,Priya Sharma", "text/csv")},
                           headers=as_user(ADMIN))
        assert resp.status_code == 400
        assert resp.json()["detail"] == {"message": "No valid tasks to import", "errors": ["Client not found"]}

    @pytest.mark.parametrize("task_type, status, payment, due, assigned", [
        ("IT Notice", "in progress", "overdue", "31/03/2026", "2026-01-15"),
        ("ITNotice", "InProgress", "Overdue", "2026-03-31", "15/01/2026"),
        ("it_notice", "IN-PROGRESS", "OVERDUE", "31/03/2026", "15/01/2026"),
    ])
    def test_imported_row_exports_same_values(self, client, seeded, task_type, status,
                                              payment, due, assigned):
        row = (f"Acme Ltd, File GST, {task_type}, , {status}, call back, Priya Sharma, "
               f"{due}, {assigned}, 50000, 25000, {payment}")
        resp = client.post(f"{URL}/import", files={"file": ("t.csv", row, "text/csv")},
                           headers=as_user(ADMIN))
        assert resp.status_code == 201, resp.text
        task_id = resp.json()["ids"][0]

        resp = client.get("/api/v1/download/tasks", params={"ids": task_id}, headers=as_user(ADMIN))
        exported = list(csv.DictReader(io.StringIO(resp.text)))
        assert len(exported) == 1
        line = exported[0]
        assert line["Client Name"] == "Acme Ltd"
        assert line["Task Name"] == "File GST"
        assert line["Task Category"] == "IT Notice"
        assert line["Status"] == "In Progress"
        assert line["Comment"] == "call back"
        assert line["Assigned Name"] == "Priya Sharma"
        assert line["Due Date"] == "31/03/2026"
        assert line["Assignment Date"] == "15/01/2026"
        assert line["Completion Date"] == ""
        assert line["Payment Status"] == "Overdue"
